"""
ASGI entry point.

Used by uvicorn (`uvicorn server.asgi:app`). Loads `.env` before the
config is read.
"""

from dotenv import load_dotenv

load_dotenv()

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()
