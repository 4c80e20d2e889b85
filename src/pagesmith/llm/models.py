# -----------------------------------------------------------------------------
# This module defines the in-process model registry used by the LLM client.
#
# All models are reached through OpenRouter's OpenAI-compatible API, so a
# config only needs the provider-qualified model id, a display label for the
# CLI and UI, and default sampling parameters.
#
# Application code should prefer the short aliases ("sonnet", "gpt-4o", ...)
# over hard-coded model ids; `get_model()` also accepts any concrete id.
# -----------------------------------------------------------------------------
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ModelConfig:
    """Configuration for a single model reachable through OpenRouter.

    Parameters
    ----------
    name:
        Provider-qualified OpenRouter model id, e.g. ``"anthropic/claude-3-sonnet"``.
    label:
        Human-readable name shown in listings.
    max_tokens:
        Default completion budget. Full pages are long, so this is generous.
    temperature:
        Default sampling temperature.
    """

    name: str
    label: str = ""
    max_tokens: int = 4000
    temperature: float = 0.7


# --------------------------------------------------------------------------- #
# Registry
# --------------------------------------------------------------------------- #

#: Logical aliases → model configs.
MODEL_REGISTRY: dict[str, ModelConfig] = {
    # Best structure fidelity on long pages; the default.
    "sonnet": ModelConfig(name="anthropic/claude-3-sonnet", label="Claude 3 Sonnet (Recommended)"),
    # Cheaper and faster, occasionally sloppier JSON.
    "haiku": ModelConfig(name="anthropic/claude-3-haiku", label="Claude 3 Haiku (Fast)"),
    "gpt-4o": ModelConfig(name="openai/gpt-4o", label="GPT-4o"),
    "gpt-4-turbo": ModelConfig(name="openai/gpt-4-turbo", label="GPT-4 Turbo"),
    "mistral-large": ModelConfig(name="mistralai/mistral-large", label="Mistral Large"),
    "gemini-pro": ModelConfig(name="google/gemini-pro", label="Gemini Pro"),
}

#: Default logical alias used when callers do not explicitly choose a model.
DEFAULT_ALIAS: str = "sonnet"


def get_model(alias_or_name: str) -> ModelConfig:
    """Return a :class:`ModelConfig` for the given alias or model id.

    Resolution rules
    ----------------
    1. A registry alias returns its config.
    2. A concrete id already present in the registry returns that config.
    3. Anything else is treated as a concrete OpenRouter id with default
       sampling parameters.
    """
    if alias_or_name in MODEL_REGISTRY:
        return MODEL_REGISTRY[alias_or_name]
    for config in MODEL_REGISTRY.values():
        if config.name == alias_or_name:
            return config
    return ModelConfig(name=alias_or_name, label=alias_or_name)


def all_models() -> Mapping[str, ModelConfig]:
    """Return a shallow copy of the registry (for listings and tests)."""
    return dict(MODEL_REGISTRY)


__all__ = ["ModelConfig", "MODEL_REGISTRY", "DEFAULT_ALIAS", "get_model", "all_models"]
