"""Tests for environment-driven settings."""

from pathlib import Path

import pytest

from promptrun import config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "ALEPHALPHA_BASE_URL",
        "AlephAlpha_BASE_URL",
        "ALEPHALPHA_API_KEY",
        "PROMPTRUN_CACHE_ENABLED",
        "PROMPTRUN_CACHE_PATH",
        "PROMPTRUN_CACHE_TTL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_base_url_default():
    assert config.get_alephalpha_base_url() == "https://api.aleph-alpha.com"


def test_canonical_base_url_beats_alias(monkeypatch):
    monkeypatch.setenv("AlephAlpha_BASE_URL", "http://alias")
    monkeypatch.setenv("ALEPHALPHA_BASE_URL", "http://canonical/")
    assert config.get_alephalpha_base_url() == "http://canonical"


def test_api_key(monkeypatch):
    assert config.get_alephalpha_api_key() is None
    monkeypatch.setenv("ALEPHALPHA_API_KEY", "")
    assert config.get_alephalpha_api_key() is None
    monkeypatch.setenv("ALEPHALPHA_API_KEY", "k")
    assert config.get_alephalpha_api_key() == "k"


@pytest.mark.parametrize(
    "raw,expected",
    [("1", True), ("TRUE", True), ("on", True), ("0", False), ("No", False), ("maybe", True)],
)
def test_cache_enabled(monkeypatch, raw, expected):
    monkeypatch.setenv("PROMPTRUN_CACHE_ENABLED", raw)
    assert config.cache_enabled() is expected


def test_cache_enabled_default():
    assert config.cache_enabled() is True


def test_cache_path(monkeypatch, tmp_path):
    assert config.cache_path() == Path.home() / ".cache" / "promptrun" / "cache.sqlite"
    monkeypatch.setenv("PROMPTRUN_CACHE_PATH", str(tmp_path / "c.sqlite"))
    assert config.cache_path() == tmp_path / "c.sqlite"


def test_cache_ttl(monkeypatch):
    assert config.cache_ttl() == config.DEFAULT_CACHE_TTL_S
    monkeypatch.setenv("PROMPTRUN_CACHE_TTL", "90")
    assert config.cache_ttl() == 90.0
    monkeypatch.setenv("PROMPTRUN_CACHE_TTL", "soon")
    assert config.cache_ttl() == config.DEFAULT_CACHE_TTL_S


def test_request_timeout_is_positive():
    assert config.REQUEST_TIMEOUT_S > 0
