"""
Request and response bodies of the PageSmith HTTP API.

Field names on the wire are camelCase to match the CMS documents the
service produces; the Python attributes stay snake_case.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pagesmith.core.contracts.generation import (
    ContentGoal,
    ContentLength,
    GenerationFailure,
    GenerationRequest,
    GenerationResult,
    GenerationSuccess,
    RelatedPage,
    TokenUsage,
)
from pagesmith.core.contracts.manifest import SchemaManifest
from pagesmith.core.contracts.repair import RepairEvent


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateBody(_CamelModel):
    """Body of ``POST /generate``."""

    topic: str
    keywords: list[str] = Field(default_factory=list)
    content_goal: ContentGoal = "educate"
    tone: str = "friendly"
    content_length: ContentLength = "long"
    optional_blocks: list[str] = Field(default_factory=list)
    related_pages: list[RelatedPage] = Field(default_factory=list)
    example_pages: list[dict[str, Any]] = Field(default_factory=list)
    model: str | None = Field(default=None, description="Model alias or OpenRouter id.")
    policy: str | None = Field(default=None, description="'fail' or 'fallback'.")

    def to_request(self, manifest: SchemaManifest) -> GenerationRequest:
        return GenerationRequest(
            topic=self.topic,
            keywords=tuple(self.keywords),
            content_goal=self.content_goal,
            tone=self.tone,
            content_length=self.content_length,
            optional_blocks=tuple(self.optional_blocks),
            related_pages=tuple(self.related_pages),
            example_pages=tuple(self.example_pages),
            manifest=manifest,
        )


class RepairBody(_CamelModel):
    """Body of ``POST /repair``: a raw model reply to run through the pipeline."""

    text: str
    policy: str | None = None
    seed: int | None = None


class RepairEventOut(_CamelModel):
    kind: str
    block_index: int
    block_type: str
    message: str
    field: str | None = None

    @classmethod
    def from_event(cls, event: RepairEvent) -> RepairEventOut:
        return cls(
            kind=event.kind,
            block_index=event.block_index,
            block_type=event.block_type,
            message=event.message,
            field=event.field,
        )


class GenerationResponse(_CamelModel):
    """Uniform envelope for both outcomes of a generation."""

    success: bool
    content_blocks: list[dict[str, Any]] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    fallback_used: bool = False
    reason: str | None = None
    warnings: list[str] = Field(default_factory=list)
    repairs: list[RepairEventOut] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: GenerationResult) -> GenerationResponse:
        if isinstance(result, GenerationSuccess):
            return cls(
                success=True,
                content_blocks=result.to_payload()["contentBlocks"],
                usage=result.usage,
                fallback_used=result.fallback_used,
                repairs=[RepairEventOut.from_event(e) for e in result.repairs],
            )
        if isinstance(result, GenerationFailure):
            return cls(
                success=False,
                reason=result.reason,
                warnings=list(result.warnings),
                repairs=[RepairEventOut.from_event(e) for e in result.repairs],
            )
        raise TypeError(f"unexpected generation result {type(result).__name__}")


class BlockTypeOut(_CamelModel):
    type: str
    description: str
    mandatory: bool
    required_fields: list[str]


class ManifestOut(_CamelModel):
    """Summary of the active manifest."""

    version: str
    block_types: list[BlockTypeOut]
    mandatory_types: list[str]

    @classmethod
    def from_manifest(cls, manifest: SchemaManifest) -> ManifestOut:
        return cls(
            version=manifest.version,
            block_types=[
                BlockTypeOut(
                    type=spec.type,
                    description=spec.description,
                    mandatory=spec.mandatory,
                    required_fields=sorted(spec.required_fields),
                )
                for spec in manifest.block_types
            ],
            mandatory_types=list(manifest.mandatory_types),
        )


__all__ = [
    "BlockTypeOut",
    "GenerateBody",
    "GenerationResponse",
    "ManifestOut",
    "RepairBody",
    "RepairEventOut",
]
