"""
Transport status for the two links of a bridged call.

Tracked separately from the bridge state machine: the reducer decides
what the call does, this only records what the sockets are doing.
Owned by BridgeSession, mutated by the gateway and registry.
"""
from enum import Enum

class ConnectionStatus(Enum):
    """
    Transport lifecycle status of one link.

    Independent of SessionStatus: a session may be CLOSING while a
    socket is still UP until its close completes.
    """
    DOWN = "DOWN"              # Not connected, or closed
    CONNECTING = "CONNECTING"  # Handshake in flight (AI link only)
    UP = "UP"                  # Open websocket
