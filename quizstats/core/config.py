from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    timezone: str = "UTC"
    save_retries: int = 3

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def tz(self) -> ZoneInfo:
        """Zone used for every calendar computation (windows, streak days)."""
        return ZoneInfo(self.timezone)


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")
    timezone_raw = _getenv("QUIZSTATS_TIMEZONE", "UTC")
    retries_raw = _getenv("QUIZSTATS_SAVE_RETRIES", "3")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        ZoneInfo(timezone_raw)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"QUIZSTATS_TIMEZONE must be an IANA zone name (got {timezone_raw!r})"
        ) from None

    try:
        save_retries = int(retries_raw)
    except ValueError:
        raise ValueError(
            f"QUIZSTATS_SAVE_RETRIES must be an integer (got {retries_raw!r})"
        ) from None
    if save_retries < 1:
        raise ValueError(
            f"QUIZSTATS_SAVE_RETRIES must be at least 1 (got {save_retries})"
        )

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in _TRUTHY,
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        timezone=timezone_raw,
        save_retries=save_retries,
    )


SETTINGS = load_settings()
