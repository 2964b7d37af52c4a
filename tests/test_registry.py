"""Tests for provider lookup from spec strings and pack entries."""

import pytest

from promptrun.providers.alephalpha import AlephAlphaCompletionProvider
from promptrun.providers.registry import load_provider, load_providers


@pytest.fixture(autouse=True)
def _no_env_key(monkeypatch):
    monkeypatch.delenv("ALEPHALPHA_API_KEY", raising=False)


class TestLoadProvider:
    def test_full_spec(self):
        provider = load_provider("alephalpha:completion:luminous-base")
        assert isinstance(provider, AlephAlphaCompletionProvider)
        assert provider.identify() == "alephalpha:completion:luminous-base"
        assert provider.model_name == "luminous-base"

    def test_shorthand_spec(self):
        provider = load_provider("alephalpha:luminous-extended")
        assert provider.identify() == "alephalpha:completion:luminous-extended"

    def test_model_name_may_contain_colons(self):
        provider = load_provider("alephalpha:completion:luminous-base:control")
        assert provider.model_name == "luminous-base:control"

    def test_id_override(self):
        provider = load_provider("alephalpha:completion:luminous-base", provider_id="baseline")
        assert provider.identify() == "baseline"

    @pytest.mark.parametrize(
        "spec",
        ["luminous-base", "openai:gpt-4o", "alephalpha:embedding:luminous-base", "alephalpha:"],
    )
    def test_invalid_specs(self, spec):
        with pytest.raises(ValueError):
            load_provider(spec)

    def test_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("ALEPHALPHA_API_KEY", "env-key")
        provider = load_provider("alephalpha:completion:luminous-base", config={"temperature": 0})
        assert dict(provider.config) == {"temperature": 0, "apikey": "env-key"}

    def test_explicit_api_key_wins(self, monkeypatch):
        monkeypatch.setenv("ALEPHALPHA_API_KEY", "env-key")
        provider = load_provider("alephalpha:completion:luminous-base", config={"apikey": "mine"})
        assert provider.config["apikey"] == "mine"

    def test_caller_config_not_mutated(self, monkeypatch):
        monkeypatch.setenv("ALEPHALPHA_API_KEY", "env-key")
        options = {"temperature": 0}
        load_provider("alephalpha:completion:luminous-base", config=options)
        assert options == {"temperature": 0}


class TestLoadProviders:
    def test_mixed_entries(self):
        providers = load_providers(
            [
                "alephalpha:completion:luminous-base",
                {
                    "id": "alephalpha:completion:luminous-supreme",
                    "label": "supreme-cold",
                    "config": {"temperature": 0},
                },
            ]
        )
        assert [p.identify() for p in providers] == [
            "alephalpha:completion:luminous-base",
            "supreme-cold",
        ]
        assert providers[1].config["temperature"] == 0

    def test_entry_without_id(self):
        with pytest.raises(ValueError):
            load_providers([{"config": {}}])
