# -----------------------------------------------------------------------------
# This module provides a small, synchronous client for OpenRouter's
# OpenAI-compatible Chat Completions API. It:
#   - reads the API key / base URL from settings (env or .env files)
#   - resolves model aliases through the registry in `models.py`
#   - returns the completion text together with the provider's token usage
#
# The implementation uses only the Python standard library (`urllib.request`).
# Unit tests are expected to *mock* the internal `_post()` method so that no
# real HTTP calls are made during CI.
#
# Errors
# ------
# Every transport or protocol problem surfaces as `LLMError` with a message
# meant for end users ("API Error: 401 - Invalid key", "Request timeout ...")
# and, where there is one, the HTTP status. The generation pipeline turns it
# into a typed failure; nothing above this module sees urllib exceptions.
# -----------------------------------------------------------------------------
from __future__ import annotations

import json
import urllib.error
import urllib.request
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from typing import Any

from pagesmith.core.contracts.generation import TokenUsage
from pagesmith.core.settings import get_logger, load_settings

from .models import DEFAULT_ALIAS, ModelConfig, get_model

#: Key prefix issued by OpenRouter.
API_KEY_PREFIX = "sk-or-v1-"

#: Attribution headers OpenRouter uses for its app rankings.
APP_REFERER = "http://localhost:3000"
APP_TITLE = "SEO Page Generator"

_log = get_logger("pagesmith.llm")


class LLMError(RuntimeError):
    """A provider call failed; ``str(exc)`` is safe to show to users."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def validate_api_key(api_key: str | None) -> bool:
    """Return True if ``api_key`` has the shape of an OpenRouter key.

    Examples
    --------
    >>> validate_api_key("sk-or-v1-0123456789abcdef")
    True
    >>> validate_api_key("sk-live-123")
    False
    """
    if not api_key:
        return False
    return api_key.startswith(API_KEY_PREFIX) and len(api_key) > 20


@dataclass(frozen=True, slots=True)
class LLMResponse:
    """Completion text plus token usage, as reported by the provider."""

    text: str
    usage: TokenUsage
    model: str = ""


@dataclass(slots=True)
class LLMClient:
    """OpenRouter Chat Completions client with a single `generate()` call.

    Parameters
    ----------
    api_key:
        OpenRouter API key (``sk-or-v1-...``).
    base_url:
        API root, normally ``https://openrouter.ai/api/v1``.
    default_model_alias:
        Alias or concrete id used when :meth:`generate` is called without one.
    timeout_seconds:
        Network timeout for one request.
    """

    api_key: str
    base_url: str = "https://openrouter.ai/api/v1"
    default_model_alias: str = DEFAULT_ALIAS
    timeout_seconds: float = 60.0

    # --------------------------------------------------------------------- #
    # Constructors
    # --------------------------------------------------------------------- #
    @classmethod
    def from_env(cls, default_model_alias: str | None = None) -> LLMClient:
        """Construct a client from settings.

        Reads ``OPENROUTER_API_KEY``, ``OPENROUTER_BASE_URL``,
        ``PAGESMITH_MODEL`` and ``PAGESMITH_TIMEOUT_SECONDS``. A missing key is
        not an error here; :meth:`generate` reports it when a call is made.
        """
        cfg = load_settings()
        return cls(
            api_key=cfg.openrouter_api_key or "",
            base_url=cfg.openrouter_base_url,
            default_model_alias=default_model_alias or cfg.model,
            timeout_seconds=cfg.timeout_seconds,
        )

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #
    def generate(
        self,
        messages: Sequence[Mapping[str, str]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Generate one completion for the given chat messages.

        Parameters
        ----------
        messages:
            Chat-style messages, each ``{"role": ..., "content": ...}``.
        model:
            Optional alias or concrete model id; defaults to
            :attr:`default_model_alias`.
        temperature:
            Optional override of the model's default sampling temperature.
        max_tokens:
            Optional override of the model's default completion budget.

        Returns
        -------
        LLMResponse
            The first choice's content and the reported token usage.

        Raises
        ------
        LLMError
            If the key is missing, the request fails, or the response has no
            usable content.
        """
        if not self.api_key:
            raise LLMError("Missing API key: set OPENROUTER_API_KEY")

        config: ModelConfig = get_model(model or self.default_model_alias)
        payload: MutableMapping[str, Any] = {
            "model": config.name,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
            "max_tokens": int(max_tokens if max_tokens is not None else config.max_tokens),
            "temperature": float(temperature if temperature is not None else config.temperature),
            "stream": False,
        }
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": APP_REFERER,
            "X-Title": APP_TITLE,
        }
        url = self.base_url.rstrip("/") + "/chat/completions"

        _log.info("Requesting completion from %s", config.name)
        response = self._post(url=url, headers=headers, payload=payload)
        text = self._extract_content(response)
        usage = self._extract_usage(response)
        _log.info(
            "Completion received: %d chars, %d total tokens", len(text), usage.total_tokens
        )
        return LLMResponse(text=text, usage=usage, model=config.name)

    # --------------------------------------------------------------------- #
    # Internal helpers (test seams)
    # --------------------------------------------------------------------- #
    def _post(
        self,
        *,
        url: str,
        headers: Mapping[str, str],
        payload: Mapping[str, Any],
    ) -> dict[str, Any]:
        """Perform an HTTP POST request and decode the JSON response.

        This is the seam for unit tests: monkeypatch it to return a stubbed
        response body without any network I/O.

        Raises
        ------
        LLMError
            On HTTP errors (with status), timeouts, network failures, or a
            body that is not JSON.
        """
        body = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(
            url=url,
            data=body,
            headers=dict(headers),
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore")
            raise LLMError(
                f"API Error: {exc.code} - {_error_message(detail) or exc.reason}",
                status=exc.code,
            ) from exc
        except urllib.error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                raise LLMError("Request timeout - the API took too long to respond") from exc
            raise LLMError("No response from API - check your internet connection") from exc
        except TimeoutError as exc:
            raise LLMError("Request timeout - the API took too long to respond") from exc

        try:
            decoded: dict[str, Any] = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise LLMError("Failed to decode API response as JSON") from exc
        return decoded

    # --------------------------------------------------------------------- #
    # Response extraction helpers
    # --------------------------------------------------------------------- #
    @staticmethod
    def _extract_content(response: Mapping[str, Any]) -> str:
        """Extract ``choices[0].message.content`` from a Chat Completions payload."""
        choices = response.get("choices")
        if not isinstance(choices, list) or not choices:
            raise LLMError("No content generated from API")

        message = choices[0].get("message") if isinstance(choices[0], Mapping) else None
        if not isinstance(message, Mapping):
            raise LLMError("API response choice[0].message is missing or invalid")

        content = message.get("content")
        if not isinstance(content, str):
            raise LLMError("API response choice[0].message.content is not text")
        return content

    @staticmethod
    def _extract_usage(response: Mapping[str, Any]) -> TokenUsage:
        """Pass the provider's token counters through; missing counters are 0."""
        usage = response.get("usage")
        if not isinstance(usage, Mapping):
            return TokenUsage()

        def count(name: str) -> int:
            value = usage.get(name)
            return value if isinstance(value, int) and value >= 0 else 0

        return TokenUsage(
            prompt_tokens=count("prompt_tokens"),
            completion_tokens=count("completion_tokens"),
            total_tokens=count("total_tokens"),
        )


def _error_message(body: str) -> str:
    """Pull ``error.message`` out of an OpenRouter error body, if present."""
    try:
        decoded = json.loads(body)
    except json.JSONDecodeError:
        return ""
    error = decoded.get("error") if isinstance(decoded, dict) else None
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return ""


__all__ = ["API_KEY_PREFIX", "LLMClient", "LLMError", "LLMResponse", "validate_api_key"]
