"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No controller logic
- No behavioral constants (see spec.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from spec import (
    CALL_START_TIMEOUT_MS,
    CLIENT_CLASS_DESKTOP,
    CLIENT_CLASSES,
    RECOGNITION_LANG_DEFAULT,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the gateway, which builds one controller per connection.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str
    port: int

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    recognition_lang: str
    default_client_class: str

    # ------------------------------------------------------------------
    # Call handoff
    # ------------------------------------------------------------------

    call_start_timeout_ms: int

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a variable is present but malformed.
        """
        client_class = os.environ.get("DEFAULT_CLIENT_CLASS", CLIENT_CLASS_DESKTOP)
        if client_class not in CLIENT_CLASSES:
            raise ValueError(
                f"DEFAULT_CLIENT_CLASS must be one of {CLIENT_CLASSES}, got {client_class!r}"
            )

        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "8000")),

            recognition_lang=os.environ.get("RECOGNITION_LANG", RECOGNITION_LANG_DEFAULT),
            default_client_class=client_class,

            call_start_timeout_ms=int(
                os.environ.get("CALL_START_TIMEOUT_MS", str(CALL_START_TIMEOUT_MS))
            ),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )
