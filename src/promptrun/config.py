"""Environment-driven settings for providers and the response cache."""

import os
from pathlib import Path

DEFAULT_ALEPHALPHA_BASE_URL = "https://api.aleph-alpha.com"

# Canonical name first; the mixed-case alias is kept for older setups.
_BASE_URL_VARS = ("ALEPHALPHA_BASE_URL", "AlephAlpha_BASE_URL")
API_KEY_VAR = "ALEPHALPHA_API_KEY"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


REQUEST_TIMEOUT_S = _env_float("PROMPTRUN_REQUEST_TIMEOUT", 300.0)
DEFAULT_CACHE_TTL_S = 14 * 24 * 60 * 60


def get_alephalpha_base_url() -> str:
    for name in _BASE_URL_VARS:
        value = os.environ.get(name)
        if value:
            return value.rstrip("/")
    return DEFAULT_ALEPHALPHA_BASE_URL


def get_alephalpha_api_key() -> str | None:
    return os.environ.get(API_KEY_VAR) or None


def cache_enabled() -> bool:
    return _env_bool("PROMPTRUN_CACHE_ENABLED", True)


def cache_path() -> Path:
    raw = os.environ.get("PROMPTRUN_CACHE_PATH")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".cache" / "promptrun" / "cache.sqlite"


def cache_ttl() -> float:
    return _env_float("PROMPTRUN_CACHE_TTL", DEFAULT_CACHE_TTL_S)
