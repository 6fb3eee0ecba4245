"""
Development entry point.

Runs the ASGI app under uvicorn with host/port from the environment:

    python backend/server/main.py
"""

from __future__ import annotations

import uvicorn
from dotenv import load_dotenv

from config import AppConfig


def main() -> None:
    load_dotenv()
    config = AppConfig.load_from_env()

    uvicorn.run(
        "server.asgi:app",
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        reload=config.env == "dev",  # Dev mode only
    )


if __name__ == "__main__":
    main()
