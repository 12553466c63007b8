"""
Process entry point for the call bridge.

    python -m server.main          (from the backend directory)
    realtime-call-bridge           (installed console script)

Loads .env, builds the config and runs uvicorn on HOST/PORT.
"""

from __future__ import annotations

import uvicorn
from dotenv import load_dotenv

from config import AppConfig
from server.app import create_app


def cli() -> None:
    """Run the bridge server until interrupted."""
    load_dotenv()
    config = AppConfig.load_from_env()
    app = create_app(config)

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        ws="websockets",
    )


if __name__ == "__main__":
    cli()
