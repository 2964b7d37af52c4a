from collections.abc import Iterable, Mapping
from typing import Any

from .. import config as settings
from .alephalpha import AlephAlphaCompletionOptions, AlephAlphaCompletionProvider
from .base import ApiProvider


def _parse_spec(spec: str) -> tuple[str, str, str]:
    """Split ``family:operation:model`` (or ``family:model``) into its parts."""
    parts = spec.split(":", 2)
    if len(parts) == 2:
        family, model_name = parts
        operation = "completion"
    elif len(parts) == 3:
        family, operation, model_name = parts
    else:
        raise ValueError(
            f"Invalid provider spec '{spec}'. Expected format: provider:operation:model_name"
        )
    if not model_name:
        raise ValueError(f"Provider spec '{spec}' has no model name")
    return family, operation, model_name


def load_provider(
    spec: str,
    *,
    provider_id: str | None = None,
    config: AlephAlphaCompletionOptions | Mapping[str, Any] | None = None,
) -> ApiProvider:
    family, operation, model_name = _parse_spec(spec)

    if family == "alephalpha":
        if operation != "completion":
            raise ValueError(f"Unsupported AlephAlpha operation '{operation}'")
        merged = dict(config or {})
        if "apikey" not in merged:
            api_key = settings.get_alephalpha_api_key()
            if api_key:
                merged["apikey"] = api_key
        return AlephAlphaCompletionProvider(model_name, provider_id=provider_id, config=merged)

    raise ValueError(f"Unknown provider '{family}'")


def load_providers(entries: Iterable[str | Mapping[str, Any]]) -> list[ApiProvider]:
    """Build providers from pack YAML entries.

    An entry is either a bare spec string or a mapping with ``id`` (the spec),
    an optional ``label`` used as the provider identity, and ``config``.
    """
    providers: list[ApiProvider] = []
    for entry in entries:
        if isinstance(entry, str):
            providers.append(load_provider(entry))
            continue
        if "id" not in entry:
            raise ValueError(f"Provider entry is missing 'id': {dict(entry)}")
        providers.append(
            load_provider(
                entry["id"],
                provider_id=entry.get("label"),
                config=entry.get("config"),
            )
        )
    return providers
