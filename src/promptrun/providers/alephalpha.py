"""Aleph Alpha completion provider.

Every call is a single cached, timeout-bounded POST to ``{base_url}/complete``.
Transport failures, API-reported errors and malformed payloads all come back
as a ``Failure``; nothing raised by the transport reaches the caller.
"""

import json
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, TypedDict

from .. import config as settings
from ..cache import fetch_with_cache
from .base import ApiProvider, Failure, ProviderResult, Success

logger = logging.getLogger(__name__)

_REDACTED = "***"


class AlephAlphaCompletionOptions(TypedDict, total=False):
    # https://docs.aleph-alpha.com/api/complete/
    # Unknown keys are forwarded untouched as well.
    apikey: str
    maximum_tokens: int
    temperature: float
    top_k: int
    top_p: float
    presence_penalty: float
    frequency_penalty: float
    repetition_penalties_include_prompt: bool
    repetition_penalties_include_completion: bool
    use_multiplicative_presence_penalty: bool
    use_multiplicative_frequency_penalty: bool
    use_multiplicative_sequence_penalty: bool
    penalty_bias: str
    penalty_exceptions: list[str]
    penalty_exceptions_include_stop_sequences: bool
    best_of: int
    logit_bias: str
    n: int
    log_probs: bool
    stop_sequences: list[str]
    tokens: bool
    raw_completion: bool
    disable_optimization: bool
    completion_bias_inclusion: list[str]
    completion_bias_inclusion_first_token_only: bool
    contextual_control_threshold: float
    control_log_additive: bool


def _log_debug(message: str, *args: Any) -> None:
    # Diagnostics are best-effort and never change the result.
    try:
        logger.debug(message, *args)
    except Exception:
        pass


def _redact(envelope: dict) -> dict:
    options = dict(envelope.get("options") or {})
    if "apikey" in options:
        options["apikey"] = _REDACTED
    return {**envelope, "options": options}


def _partial_output(err: Exception) -> str | None:
    """Body of the HTTP response attached to ``err``, if the transport kept one."""
    response = getattr(err, "response", None)
    if response is None:
        return None
    text = getattr(response, "text", None)
    return text or None


def _decode_body(data: Any) -> Any:
    if isinstance(data, (str, bytes)):
        return json.loads(data)
    return data


def _extract_content(body: Any) -> str:
    if not isinstance(body, Mapping):
        raise TypeError(f"expected a JSON object, got {type(body).__name__}")
    content = body["content"]
    if not isinstance(content, str):
        raise TypeError(f"'content' must be a string, got {type(content).__name__}")
    return content


class AlephAlphaCompletionProvider(ApiProvider):
    def __init__(
        self,
        model_name: str,
        *,
        provider_id: str | None = None,
        config: AlephAlphaCompletionOptions | Mapping[str, Any] | None = None,
    ):
        self._model_name = model_name
        self._id = provider_id or f"alephalpha:completion:{model_name}"
        self._config: Mapping[str, Any] = MappingProxyType(dict(config or {}))

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def config(self) -> Mapping[str, Any]:
        return self._config

    def identify(self) -> str:
        return self._id

    def describe(self) -> str:
        return f"[AlephAlpha Completion Provider {self._model_name}]"

    def _build_envelope(self, prompt: str) -> dict:
        return {
            "model": self._model_name,
            "prompt": prompt,
            "options": dict(self._config),
        }

    def _build_request(self, envelope: dict) -> dict:
        return {
            "method": "POST",
            "headers": {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._config.get('apikey', '')}",
            },
            "body": json.dumps(envelope),
        }

    def invoke(self, prompt: str) -> ProviderResult:
        envelope = self._build_envelope(prompt)
        _log_debug("Calling AlephAlpha API: %s", _redact(envelope))

        try:
            response = fetch_with_cache(
                f"{settings.get_alephalpha_base_url()}/complete",
                self._build_request(envelope),
                settings.REQUEST_TIMEOUT_S,
                "text",
            )
        except Exception as err:
            message = f"API call error: {err}"
            partial = _partial_output(err)
            if partial is not None:
                message += f". Output:\n{partial}"
            return Failure(error=message)

        data = response.data
        _log_debug("\tAlephAlpha complete API response (cached=%s): %s", response.cached, data)

        try:
            body = _decode_body(data)
        except (ValueError, RecursionError) as err:
            return Failure(error=f"API response error: {err}: {json.dumps(data, default=str)}")

        if isinstance(body, Mapping) and body.get("error"):
            return Failure(error=f"AlephAlpha error: {body['error']}")

        try:
            return Success(output=_extract_content(body))
        except (KeyError, TypeError) as err:
            return Failure(error=f"API response error: {err}: {json.dumps(body, default=str)}")
