"""
Application Configuration.

Pydantic Settings model for the NimbusTalk client core.  All configuration
is loaded from environment variables and ``.env`` files, then passed
explicitly into gateway, store and controller constructors by the
composition root (``main.py`` / ``create_services``).
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Backend ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")
    USERS_TABLE: str = "users"
    SEARCH_USERS_RPC: str = "search_users"

    # --- Network ---
    NETWORK_TIMEOUT_S: float = 30.0
    CONNECTIVITY_PROBE_TIMEOUT_S: float = 3.0

    # --- Session flows ---
    USERNAME_CHECK_DEBOUNCE_S: float = 0.5
    SPLASH_MIN_DURATION_S: float = 1.0
    MIN_DISPLAY_NAME_LENGTH: int = Field(default=1, ge=1)

    # --- Durable preferences store ---
    PREFERENCES_DB_PATH: Path = Path("nimbustalk_prefs.db")
    PREFERENCES_SALT_PATH: Path = Field(
        default_factory=lambda: Path.home() / ".nimbustalk_prefs_salt"
    )
    PREFERENCES_KDF_ITERATIONS: int = Field(default=600_000, ge=1)

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "nimbustalk.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing,
        so operators get a log line telling them the client will refuse
        every backend call.
        """
        _log = logging.getLogger("nimbustalk.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL or not self.SUPABASE_ANON_KEY.get_secret_value():
            _log.warning(
                "SUPABASE_URL or SUPABASE_ANON_KEY is empty; every backend "
                "call will fail with a network error."
            )

        return self

    @property
    def is_backend_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY.get_secret_value())


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Only the entry point should call this; everything below it receives
    the instance through its constructor.  Uses a check-lock-check pattern
    so first initialisation stays thread-safe.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
