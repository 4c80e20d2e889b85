"""Pipeline entry points for PageSmith.

Currently exposed:

- :class:`GenerationPipeline`: raw model reply → compliant content blocks.
- :func:`generate_page`: request validation, prompt, provider call, pipeline.
"""

from __future__ import annotations

from .generation import (
    FailurePolicy,
    GenerationPipeline,
    PipelineState,
    build_fallback_block,
    generate_page,
    validate_request,
)

__all__ = [
    "FailurePolicy",
    "GenerationPipeline",
    "PipelineState",
    "build_fallback_block",
    "generate_page",
    "validate_request",
]
