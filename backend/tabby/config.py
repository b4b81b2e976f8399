from __future__ import annotations

import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"
    LOG_JSON = _env_bool("LOG_JSON", True)
    CURRENCY = os.getenv("CURRENCY", "USD").strip() or "USD"
    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "$")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").strip() or "*"
