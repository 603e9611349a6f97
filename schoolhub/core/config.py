from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    redis_url: str | None
    data_api_url: str | None
    data_api_key: str | None
    data_api_timeout: float
    data_api_session_token: str | None

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
    def uses_remote_data(self) -> bool:
        return self.data_api_url is not None


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")
    timeout_raw = _getenv("DATA_API_TIMEOUT", "10")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        data_api_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"DATA_API_TIMEOUT must be a number of seconds (got {timeout_raw!r})"
        ) from None
    if data_api_timeout <= 0:
        raise ValueError(
            f"DATA_API_TIMEOUT must be positive (got {timeout_raw!r})"
        )

    redis_url = _getenv("REDIS_URL", "") or None
    # Trailing slash stripped so path joins stay predictable.
    data_api_url = _getenv("DATA_API_URL", "").rstrip("/") or None
    data_api_key = _getenv("DATA_API_KEY", "") or None
    data_api_session_token = _getenv("DATA_API_SESSION_TOKEN", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        port=port,
        redis_url=redis_url,
        data_api_url=data_api_url,
        data_api_key=data_api_key,
        data_api_timeout=data_api_timeout,
        data_api_session_token=data_api_session_token,
    )


SETTINGS = load_settings()
