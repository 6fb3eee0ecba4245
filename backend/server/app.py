"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Configure the JSONL logger
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import AppConfig
from controller.timings import ControllerTimings
from observability import logger

from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    *,
    timings: ControllerTimings | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with different configurations (and shrunken timings)
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()

    logger.configure(enabled=config.enable_json_logs)

    app = FastAPI(title="Wake Word Controller API")

    app.state.config = config
    # None -> each gateway derives timings from config
    app.state.timings = timings

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    register_routes(app)

    return app
