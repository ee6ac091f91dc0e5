"""Application configuration utilities."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel


class Settings(BaseModel):
    API_BASE_URL: str = "http://localhost:8000"
    API_TOKEN: str = ""
    LOG_LEVEL: str = "INFO"
    TZ: str = "Asia/Kolkata"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    POLL_INTERVAL_SECONDS: float = 2.0
    PROCESSING_TIMEOUT_SECONDS: float = 20.0
    STATUS_ROTATE_SECONDS: float = 2.0
    PROGRESS_TICK_SECONDS: float = 0.3
    NOTICE_TTL_SECONDS: float = 3.0
    UPDATE_TRANSITION_SECONDS: float = 1.5

    SANDBOX_TOKEN: str = ""
    SANDBOX_PROCESSING_DELAY_SECONDS: float = 0.0


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else default


@lru_cache
def get_settings() -> Settings:
    defaults = Settings()
    return Settings(
        API_BASE_URL=os.getenv("API_BASE_URL", defaults.API_BASE_URL),
        API_TOKEN=os.getenv("API_TOKEN", ""),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        TZ=os.getenv("TZ", defaults.TZ),
        HTTP_TIMEOUT_SECONDS=_float_env("HTTP_TIMEOUT_SECONDS", defaults.HTTP_TIMEOUT_SECONDS),
        POLL_INTERVAL_SECONDS=_float_env("POLL_INTERVAL_SECONDS", defaults.POLL_INTERVAL_SECONDS),
        PROCESSING_TIMEOUT_SECONDS=_float_env(
            "PROCESSING_TIMEOUT_SECONDS", defaults.PROCESSING_TIMEOUT_SECONDS
        ),
        STATUS_ROTATE_SECONDS=_float_env("STATUS_ROTATE_SECONDS", defaults.STATUS_ROTATE_SECONDS),
        PROGRESS_TICK_SECONDS=_float_env("PROGRESS_TICK_SECONDS", defaults.PROGRESS_TICK_SECONDS),
        NOTICE_TTL_SECONDS=_float_env("NOTICE_TTL_SECONDS", defaults.NOTICE_TTL_SECONDS),
        UPDATE_TRANSITION_SECONDS=_float_env(
            "UPDATE_TRANSITION_SECONDS", defaults.UPDATE_TRANSITION_SECONDS
        ),
        SANDBOX_TOKEN=os.getenv("SANDBOX_TOKEN", ""),
        SANDBOX_PROCESSING_DELAY_SECONDS=_float_env(
            "SANDBOX_PROCESSING_DELAY_SECONDS", defaults.SANDBOX_PROCESSING_DELAY_SECONDS
        ),
    )


settings = get_settings()
