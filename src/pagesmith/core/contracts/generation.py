"""Generation request and typed success/failure outcomes.

Motivation
----------
The pipeline prefers explicit outcomes over exceptions: every request ends
either in a :class:`GenerationSuccess` carrying compliant blocks or in a
:class:`GenerationFailure` carrying a readable reason. Nothing else is ever
returned, so callers never have to guess whether an empty list means
"nothing generated" or "something went wrong".

Example
-------
>>> result = GenerationFailure(reason="Topic is required")
>>> result.is_err()
True
>>> result.unwrap_or(())
()
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .block import ContentBlock
from .manifest import SchemaManifest
from .repair import RepairEvent

ContentGoal = Literal["educate", "compare", "convert"]
ContentLength = Literal["short", "medium", "long"]


class RelatedPage(BaseModel):
    """An existing page the generated content may link to."""

    title: str
    url: str


class GenerationRequest(BaseModel):
    """User parameters for one page generation."""

    model_config = ConfigDict(frozen=True)

    topic: str = ""
    keywords: tuple[str, ...] = ()
    content_goal: ContentGoal = "educate"
    tone: str = "friendly"
    content_length: ContentLength = "long"
    optional_blocks: tuple[str, ...] = ()
    related_pages: tuple[RelatedPage, ...] = ()
    example_pages: tuple[dict[str, Any], ...] = ()
    manifest: SchemaManifest | None = Field(
        default=None, description="Active manifest snapshot for this request."
    )


class TokenUsage(BaseModel):
    """Token counters reported by the provider, passed through unchanged."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)


class GenerationResult:
    """Sum type: either :class:`GenerationSuccess` or :class:`GenerationFailure`."""

    # ----- Introspection -----------------------------------------------------
    def is_ok(self) -> bool:
        """Return ``True`` if this is a :class:`GenerationSuccess`."""
        return isinstance(self, GenerationSuccess)

    def is_err(self) -> bool:
        """Return ``True`` if this is a :class:`GenerationFailure`."""
        return isinstance(self, GenerationFailure)

    # ----- Unwraps -----------------------------------------------------------
    def unwrap(self) -> tuple[ContentBlock, ...]:
        """Return the blocks of a success, else raise ``RuntimeError``."""
        if isinstance(self, GenerationSuccess):
            return self.blocks
        raise RuntimeError(f"Attempted to unwrap a failed generation: {self!r}")

    def unwrap_or(self, default: tuple[ContentBlock, ...]) -> tuple[ContentBlock, ...]:
        """Return the blocks of a success, or ``default`` on failure."""
        if isinstance(self, GenerationSuccess):
            return self.blocks
        return default


@dataclass(frozen=True)
class GenerationSuccess(GenerationResult):
    """Compliant, non-empty block list plus provider usage."""

    blocks: tuple[ContentBlock, ...]
    usage: TokenUsage = field(default_factory=TokenUsage)
    repairs: tuple[RepairEvent, ...] = ()
    fallback_used: bool = False

    def __post_init__(self) -> None:
        if not self.blocks:
            raise ValueError("GenerationSuccess requires at least one block")

    def to_payload(self) -> dict[str, Any]:
        """Return the ``{"contentBlocks": [...]}`` document."""
        return {"contentBlocks": [b.to_sanity() for b in self.blocks]}


@dataclass(frozen=True)
class GenerationFailure(GenerationResult):
    """Explicit failure with a human-readable reason."""

    reason: str
    warnings: tuple[str, ...] = ()
    repairs: tuple[RepairEvent, ...] = ()

    @classmethod
    def from_messages(
        cls, prefix: str, messages: Sequence[str], repairs: Sequence[RepairEvent] = ()
    ) -> GenerationFailure:
        """Join ``messages`` into one reason string, keeping them individually too."""
        return cls(
            reason=f"{prefix}: {'; '.join(messages)}" if messages else prefix,
            warnings=tuple(messages),
            repairs=tuple(repairs),
        )


__all__ = [
    "ContentGoal",
    "ContentLength",
    "RelatedPage",
    "GenerationRequest",
    "TokenUsage",
    "GenerationResult",
    "GenerationSuccess",
    "GenerationFailure",
]
