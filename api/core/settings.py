"""
Environment-driven settings.

Values are read once per process by `load_settings()`. A `.env` file found from
the working directory upward is honored (python-dotenv) but never overrides variables
already present in the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv


DEFAULT_PORT = 3002
DEFAULT_DB_PORT = 5432


def _env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    admin_secret: str = ""
    contact_link: str = ""

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

    database_url: str = ""
    db_host: str = ""
    db_port: int = DEFAULT_DB_PORT
    db_name: str = ""
    db_user: str = ""
    # None means DB_PASSWORD is unset; "" is a valid password for trust/peer auth.
    db_password: str | None = None
    db_pool_min: int = 1
    db_pool_max: int = 20
    db_connect_timeout_s: float = 2.0
    db_idle_timeout_s: float = 30.0
    db_connect_retries: int = 5
    db_retry_delay_s: float = 2.0

    # "Track first, validate after" when true; only valid numbers are tracked otherwise.
    track_invalid_numbers: bool = True

    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    rate_limit_max: int = 1000
    rate_limit_window_s: float = 60.0
    request_timeout_s: float = 30.0

    log_level: str = "INFO"

    def missing_required(self) -> list[str]:
        """
        Names of required variables that are unset.
        """
        missing: list[str] = []
        if not self.database_url:
            for name, value in (
                ("DB_HOST", self.db_host),
                ("DB_NAME", self.db_name),
                ("DB_USER", self.db_user),
            ):
                if not value:
                    missing.append(name)
            if self.db_password is None:
                missing.append("DB_PASSWORD")
        if not self.admin_secret:
            missing.append("ADMIN_SECRET")
        if not self.contact_link:
            missing.append("CONTACT_LINK")
        return missing


def load_settings() -> Settings:
    load_dotenv(find_dotenv(usecwd=True), override=False)
    return Settings(
        admin_secret=_env_str("ADMIN_SECRET"),
        contact_link=_env_str("CONTACT_LINK") or _env_str("WHATSAPP_LINK"),
        host=_env_str("HOST", "0.0.0.0") or "0.0.0.0",
        port=_env_int("PORT", DEFAULT_PORT),
        database_url=_env_str("DATABASE_URL"),
        db_host=_env_str("DB_HOST"),
        db_port=_env_int("DB_PORT", DEFAULT_DB_PORT),
        db_name=_env_str("DB_NAME"),
        db_user=_env_str("DB_USER"),
        db_password=os.environ.get("DB_PASSWORD"),
        db_pool_min=_env_int("DB_POOL_MIN", 1),
        db_pool_max=_env_int("DB_POOL_MAX", 20),
        db_connect_timeout_s=_env_float("DB_CONNECT_TIMEOUT_S", 2.0),
        db_idle_timeout_s=_env_float("DB_IDLE_TIMEOUT_S", 30.0),
        db_connect_retries=_env_int("DB_CONNECT_RETRIES", 5),
        db_retry_delay_s=_env_float("DB_RETRY_DELAY_S", 2.0),
        track_invalid_numbers=_env_bool("TRACK_INVALID_NUMBERS", True),
        cors_origins=_env_list("CORS_ORIGINS", "*"),
        rate_limit_max=_env_int("RATE_LIMIT_MAX", 1000),
        rate_limit_window_s=_env_float("RATE_LIMIT_WINDOW_S", 60.0),
        request_timeout_s=_env_float("REQUEST_TIMEOUT_S", 30.0),
        log_level=_env_str("LOG_LEVEL", "INFO").upper() or "INFO",
    )
