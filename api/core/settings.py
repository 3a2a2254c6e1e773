"""
Environment-driven settings.

Every value is read at call time so tests can tweak `os.environ` freely.
Invalid values fall back to the default instead of failing startup.
"""

from __future__ import annotations

import os

DEFAULT_STORE_TIMEOUT_S = 5.0
DEFAULT_PAGE_SIZE = 20
DEFAULT_MAX_PAGE_SIZE = 100
DEFAULT_TRENDING_K = 10


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


def pool_min_size() -> int:
    return max(1, _env_int("DB_POOL_MIN_SIZE", 1))


def pool_max_size() -> int:
    return max(pool_min_size(), _env_int("DB_POOL_MAX_SIZE", 5))


def command_timeout_s() -> float:
    return _env_float("DB_COMMAND_TIMEOUT_S", 30.0)


def store_timeout_s() -> float:
    """
    Upper bound for a single store round-trip issued by the catalog.
    """
    value = _env_float("STORE_TIMEOUT_S", DEFAULT_STORE_TIMEOUT_S)
    return value if value > 0 else DEFAULT_STORE_TIMEOUT_S


def default_page_size() -> int:
    value = _env_int("CATALOG_DEFAULT_LIMIT", DEFAULT_PAGE_SIZE)
    return min(max(1, value), max_page_size())


def max_page_size() -> int:
    value = _env_int("CATALOG_MAX_LIMIT", DEFAULT_MAX_PAGE_SIZE)
    return value if value > 0 else DEFAULT_MAX_PAGE_SIZE


def trending_k() -> int:
    value = _env_int("TRENDING_K", DEFAULT_TRENDING_K)
    return value if value > 0 else DEFAULT_TRENDING_K


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:5173", "http://127.0.0.1:5173"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
