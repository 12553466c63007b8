"""
ASGI entry point.

`uvicorn server.asgi:app` from the backend directory. Environment is
read from .env (if present) before the config is built.
"""

from dotenv import load_dotenv

load_dotenv()

from config import AppConfig  # pylint: disable=wrong-import-position
from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app(AppConfig.load_from_env())
