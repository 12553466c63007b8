"""
Exceptions raised at the two wire boundaries.

Decoders raise; link adapters catch, log and drop the single event.
"""

from __future__ import annotations


class BridgeProtocolError(Exception):
    """Base class for malformed inbound messages on either link."""


class TelephonyProtocolError(BridgeProtocolError):
    """
    Raised when a telephony media-stream message cannot be decoded.

    Covers invalid JSON, missing fields and undecodable audio payloads.
    The message is unsafe to process and must be dropped.
    """


class RealtimeProtocolError(BridgeProtocolError):
    """
    Raised when an AI realtime server event cannot be decoded.

    The event is dropped; the session continues.
    """


class LinkClosedError(Exception):
    """Raised by a link when asked to send on a transport that is gone."""
