"""
Service configuration.

All settings come from environment variables (a local `.env` is loaded by
`main.py` before `load_settings()` runs).
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

# ── Defaults ─────────────────────────────────────────────────────────────────

DEFAULT_DAILY_LIMIT = 50
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_IMAGE_API_URL = "https://api.example.com/v1/images/generations"
DEFAULT_QUOTA_KEY = "quota:dailyCounter"


class Settings(BaseModel):
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_GEMINI_MODEL
    image_api_url: str = DEFAULT_IMAGE_API_URL
    image_api_key: str = ""
    image_size: str = "1024x1024"

    daily_limit: int = Field(default=DEFAULT_DAILY_LIMIT, ge=0)
    script_timeout_seconds: float = Field(default=60.0, gt=0)
    image_timeout_seconds: float = Field(default=60.0, gt=0)
    image_max_concurrency: Optional[int] = Field(default=None, ge=1)

    redis_url: Optional[str] = None
    quota_key: str = DEFAULT_QUOTA_KEY

    allowed_origin: str = "*"
    log_level: str = "INFO"
    port: int = 8080


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


def load_settings() -> Settings:
    """Build Settings from the environment, leaving unset values at their defaults."""
    mapping = {
        "gemini_api_key": _env("GEMINI_API_KEY") or _env("GOOGLE_API_KEY"),
        "gemini_model": _env("GEMINI_MODEL"),
        "image_api_url": _env("IMAGE_API_URL"),
        "image_api_key": _env("IMAGE_API_KEY"),
        "image_size": _env("IMAGE_SIZE"),
        "daily_limit": _env("GLOBAL_DAILY_LIMIT"),
        "script_timeout_seconds": _env("SCRIPT_TIMEOUT_SECONDS"),
        "image_timeout_seconds": _env("IMAGE_TIMEOUT_SECONDS"),
        "image_max_concurrency": _env("IMAGE_MAX_CONCURRENCY"),
        "redis_url": _env("REDIS_URL"),
        "quota_key": _env("QUOTA_KEY"),
        "allowed_origin": _env("ALLOWED_ORIGIN"),
        "log_level": _env("LOG_LEVEL"),
        "port": _env("PORT"),
    }
    return Settings(**{k: v for k, v in mapping.items() if v is not None})
