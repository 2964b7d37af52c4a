"""HTTP fetch with a SQLite-backed response cache.

Identical requests (same URL, method, headers and body) are served from the
cache instead of hitting the network. Only successful (2xx) responses are
stored; anything else is returned to the caller uncached so that API-reported
errors can be inspected. Transport failures propagate.
"""

import hashlib
import json
import logging
import sqlite3
import time
from dataclasses import dataclass
from typing import Any

import requests

from . import config

logger = logging.getLogger(__name__)

RESPONSE_MODES = ("json", "text")


@dataclass
class FetchResponse:
    data: Any
    cached: bool = False
    status: int | None = None


def _connect() -> sqlite3.Connection:
    path = config.cache_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("""
        CREATE TABLE IF NOT EXISTS responses (
            cache_key  TEXT PRIMARY KEY,
            url        TEXT NOT NULL,
            status     INTEGER,
            body       TEXT NOT NULL,
            created_at REAL NOT NULL
        )
    """)
    return conn


def cache_key(url: str, request: dict) -> str:
    """Deterministic fingerprint of a request.

    Headers are part of the key, but only their hash is ever stored, so
    bearer tokens never land in the cache file.
    """
    payload = json.dumps(
        {
            "url": url,
            "method": request.get("method", "GET").upper(),
            "headers": request.get("headers") or {},
            "body": request.get("body"),
        },
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _decode(body: str, response_mode: str) -> Any:
    if response_mode == "json":
        return json.loads(body)
    return body


def _lookup(key: str) -> tuple[int | None, str] | None:
    conn = _connect()
    try:
        row = conn.execute(
            "SELECT status, body, created_at FROM responses WHERE cache_key = ?",
            (key,),
        ).fetchone()
        if row is None:
            return None
        status, body, created_at = row
        if time.time() - created_at > config.cache_ttl():
            conn.execute("DELETE FROM responses WHERE cache_key = ?", (key,))
            conn.commit()
            return None
        return status, body
    finally:
        conn.close()


def _store(key: str, url: str, status: int, body: str) -> None:
    conn = _connect()
    try:
        conn.execute(
            "INSERT OR REPLACE INTO responses (cache_key, url, status, body, created_at) VALUES (?, ?, ?, ?, ?)",
            (key, url, status, body, time.time()),
        )
        conn.commit()
    finally:
        conn.close()


def fetch_with_cache(
    url: str,
    request: dict,
    timeout: float,
    response_mode: str = "json",
) -> FetchResponse:
    """Perform ``request`` against ``url``, serving a cached body when possible.

    ``request`` carries ``method``, ``headers`` and ``body``. ``timeout`` is in
    seconds. With ``response_mode="text"`` the raw body is returned; with
    ``"json"`` it is decoded and a decode failure raises.
    """
    if response_mode not in RESPONSE_MODES:
        raise ValueError(f"Unknown response mode '{response_mode}'")

    use_cache = config.cache_enabled()
    key = cache_key(url, request) if use_cache else None

    if key is not None:
        hit = _lookup(key)
        if hit is not None:
            status, body = hit
            logger.debug("Cache hit for %s (%s)", url, key[:12])
            return FetchResponse(data=_decode(body, response_mode), cached=True, status=status)

    response = requests.request(
        request.get("method", "GET"),
        url,
        headers=request.get("headers"),
        data=request.get("body"),
        timeout=timeout,
    )
    body = response.text
    data = _decode(body, response_mode)

    if key is not None and 200 <= response.status_code < 300:
        _store(key, url, response.status_code, body)
    elif key is not None:
        logger.debug("Not caching %s response from %s", response.status_code, url)

    return FetchResponse(data=data, cached=False, status=response.status_code)


def clear_cache() -> int:
    """Delete every cached response. Returns the number of entries removed."""
    conn = _connect()
    try:
        removed = conn.execute("DELETE FROM responses").rowcount
        conn.commit()
        return removed
    finally:
        conn.close()


def cache_stats() -> dict:
    conn = _connect()
    try:
        total, oldest = conn.execute(
            "SELECT COUNT(*), MIN(created_at) FROM responses"
        ).fetchone()
        expired = conn.execute(
            "SELECT COUNT(*) FROM responses WHERE created_at < ?",
            (time.time() - config.cache_ttl(),),
        ).fetchone()[0]
    finally:
        conn.close()
    return {
        "path": str(config.cache_path()),
        "entries": total,
        "expired": expired,
        "oldest": oldest,
    }
