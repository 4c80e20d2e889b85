"""
Generation pipeline: from a raw model reply to compliant content blocks.

Flow Overview
-------------
1. **EXTRACTING**: recover a JSON value from the reply with the extraction
   cascade. Total failure is not fatal; repair simply starts from an empty
   block array.
2. **REPAIRING**: coerce fields, sanitize references, run the block-specific
   repairers and the universal safeguards.
3. **VALIDATING**: check the repaired blocks against the manifest.
4. **DONE_SUCCESS** if the blocks are non-empty and compliant. Otherwise the
   failure policy decides between **DONE_FAILURE** (typed failure carrying
   every warning) and **DONE_FALLBACK** (one synthesized block of the first
   mandatory type that can be synthesized).

Single forward pass, no retries. :meth:`GenerationPipeline.run` depends only
on ``(raw_text, manifest, policy, rng)``; every stage builds new objects and
the reply's object graph is never shared with the output.

:func:`generate_page` wraps the pipeline with request validation, prompt
construction, and the provider call.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Any

from pagesmith.core.contracts.block import ContentBlock
from pagesmith.core.contracts.generation import (
    GenerationFailure,
    GenerationRequest,
    GenerationResult,
    GenerationSuccess,
    TokenUsage,
)
from pagesmith.core.contracts.manifest import FieldTypeTag, SchemaManifest
from pagesmith.core.contracts.repair import RepairLog
from pagesmith.core.settings import get_logger, load_settings
from pagesmith.extraction.extractor import extract_blocks
from pagesmith.llm.client import LLMClient, LLMError
from pagesmith.manifest.loader import ManifestError, get_manifest_store
from pagesmith.prompting.prompt import build_messages
from pagesmith.repair.engine import repair_blocks
from pagesmith.repair.field_types import make_paragraph
from pagesmith.repair.keys import KeyFactory
from pagesmith.validation.validator import validate_blocks

_log = get_logger("pagesmith.pipeline")

#: Prefix of the failure reason when repaired output is still not compliant.
AUTO_FIX_FAILED = "Auto-fix failed"
#: Prefix of the failure reason when the request itself is invalid.
VALIDATION_FAILED = "Validation failed"


class PipelineState(str, Enum):
    """States of one pipeline run."""

    EXTRACTING = "extracting"
    REPAIRING = "repairing"
    VALIDATING = "validating"
    DONE_SUCCESS = "done_success"
    DONE_FALLBACK = "done_fallback"
    DONE_FAILURE = "done_failure"

    @property
    def terminal(self) -> bool:
        return self in (
            PipelineState.DONE_SUCCESS,
            PipelineState.DONE_FALLBACK,
            PipelineState.DONE_FAILURE,
        )


class FailurePolicy(str, Enum):
    """What to return when the repaired output is still not compliant."""

    FAIL = "fail"
    FALLBACK = "fallback"


# --------------------------------------------------------------------------- #
# Fallback block
# --------------------------------------------------------------------------- #


def build_fallback_block(
    manifest: SchemaManifest, reason: str, keys: KeyFactory | None = None
) -> dict[str, Any]:
    """Synthesize one compliant block explaining that generation failed.

    The first mandatory type whose required fields can all be synthesized is
    used. String-like fields carry a short notice; numbers are 0 and enums
    take their first allowed value.
    """
    factory = keys if keys is not None else KeyFactory()
    notice = "Content could not be generated"
    if reason:
        notice = f"{notice}: {reason}"

    for block_type in manifest.mandatory_types:
        spec = manifest.get_spec(block_type)
        if spec is None or not spec.is_synthesizable():
            continue
        block: dict[str, Any] = {"_type": spec.type, "_key": factory.new_key(spec.type)}
        for name in sorted(spec.required_fields):
            tag = spec.tag_for(name)
            if tag is FieldTypeTag.NUMBER:
                block[name] = 0
            elif tag is FieldTypeTag.ENUM:
                block[name] = spec.field_enums[name][0]
            elif tag is FieldTypeTag.STRING_ARRAY:
                block[name] = [notice]
            elif tag is FieldTypeTag.RICH_TEXT_ARRAY:
                block[name] = [make_paragraph(notice, factory)]
            else:
                block[name] = notice
        return block

    # The manifest validator guarantees a synthesizable mandatory type.
    raise ManifestError("manifest has no mandatory block type that can be synthesized")


# --------------------------------------------------------------------------- #
# Pipeline
# --------------------------------------------------------------------------- #


class GenerationPipeline:
    """Extract → repair → validate, with a configurable failure policy.

    Parameters
    ----------
    manifest:
        Manifest snapshot; captured once, never re-read mid-run.
    policy:
        :class:`FailurePolicy` or its string value. Defaults to ``fail``.
    rng:
        Random source for allow-list selections and generated keys.
    clock:
        Time source for generated keys.
    """

    def __init__(
        self,
        manifest: SchemaManifest,
        policy: FailurePolicy | str = FailurePolicy.FAIL,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.manifest = manifest
        self.policy = FailurePolicy(policy)
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock
        self.transitions: list[PipelineState] = []

    @property
    def state(self) -> PipelineState | None:
        """State reached by the most recent run, or ``None`` before any run."""
        return self.transitions[-1] if self.transitions else None

    def _enter(self, state: PipelineState) -> None:
        self.transitions.append(state)
        _log.info("Pipeline state -> %s", state.name)

    def run(self, raw_text: str, usage: TokenUsage | None = None) -> GenerationResult:
        """Turn one raw model reply into a :class:`GenerationResult`.

        Never raises for malformed input; the outcome is always either a
        non-empty compliant success or an explicit failure.
        """
        self.transitions = []
        usage = usage if usage is not None else TokenUsage()
        keys = KeyFactory(self._rng, self._clock)
        log = RepairLog(get_logger("pagesmith.repair"))

        self._enter(PipelineState.EXTRACTING)
        extraction = extract_blocks(raw_text)
        if not extraction.succeeded:
            _log.warning("No JSON recovered from model output; continuing with 0 blocks")

        self._enter(PipelineState.REPAIRING)
        outcome = repair_blocks(extraction.blocks, self.manifest, rng=self._rng, keys=keys, log=log)

        self._enter(PipelineState.VALIDATING)
        report = validate_blocks(outcome.blocks, self.manifest)

        if outcome.blocks and report.compliant:
            self._enter(PipelineState.DONE_SUCCESS)
            return GenerationSuccess(
                blocks=tuple(ContentBlock.from_sanity(b) for b in outcome.blocks),
                usage=usage,
                repairs=outcome.events,
            )

        warnings = report.messages()
        if not outcome.blocks:
            warnings = [*warnings, "No valid content blocks after repair"]
        _log.warning("Repaired output not compliant: %s", "; ".join(warnings))

        if self.policy is FailurePolicy.FALLBACK:
            return self._fallback(warnings, usage, log, keys)

        self._enter(PipelineState.DONE_FAILURE)
        return GenerationFailure.from_messages(AUTO_FIX_FAILED, warnings, log.snapshot())

    def _fallback(
        self,
        warnings: Sequence[str],
        usage: TokenUsage,
        log: RepairLog,
        keys: KeyFactory,
    ) -> GenerationResult:
        reason = warnings[0] if warnings else "model output was not usable"
        block = build_fallback_block(self.manifest, reason, keys)
        check = validate_blocks([block], self.manifest)
        if not check.compliant:
            self._enter(PipelineState.DONE_FAILURE)
            return GenerationFailure.from_messages(
                AUTO_FIX_FAILED, [*warnings, *check.messages()], log.snapshot()
            )
        log.violation(-1, block["_type"], "output replaced by fallback block")
        self._enter(PipelineState.DONE_FALLBACK)
        return GenerationSuccess(
            blocks=(ContentBlock.from_sanity(block),),
            usage=usage,
            repairs=log.snapshot(),
            fallback_used=True,
        )


# --------------------------------------------------------------------------- #
# Request handling
# --------------------------------------------------------------------------- #


def validate_request(request: GenerationRequest, manifest: SchemaManifest | None) -> list[str]:
    """Return every precondition violation of ``request`` (empty if valid)."""
    if manifest is None:
        return ["Schema manifest not loaded"]

    errors: list[str] = []
    unknown = [b for b in request.optional_blocks if b not in manifest]
    if unknown:
        errors.append(
            f"Invalid block types requested: {', '.join(unknown)}. "
            f"Available types: {', '.join(manifest.type_names)}"
        )
    if not request.topic.strip():
        errors.append("Topic is required")
    if not any(k.strip() for k in request.keywords):
        errors.append("At least one keyword is required")
    return errors


def _resolve_manifest(request: GenerationRequest) -> SchemaManifest | None:
    if request.manifest is not None:
        return request.manifest
    try:
        return get_manifest_store().current()
    except ManifestError as exc:
        _log.error("Manifest unavailable: %s", exc)
        return None


def generate_page(
    request: GenerationRequest,
    client: LLMClient,
    *,
    model: str | None = None,
    policy: FailurePolicy | str | None = None,
    rng: random.Random | None = None,
) -> GenerationResult:
    """Generate one page: validate, prompt, call the provider, run the pipeline.

    Parameters
    ----------
    request:
        User parameters. ``request.manifest`` wins over the process-wide
        manifest store.
    client:
        Provider client.
    model:
        Optional model alias or id for this call.
    policy:
        Failure policy; defaults to ``PAGESMITH_FAILURE_POLICY``.
    rng:
        Random source passed to the pipeline.

    Returns
    -------
    GenerationResult
        Request and provider errors become :class:`GenerationFailure`
        before any repair work is done.
    """
    manifest = _resolve_manifest(request)
    errors = validate_request(request, manifest)
    if errors or manifest is None:
        _log.warning("Generation request rejected: %s", "; ".join(errors))
        return GenerationFailure.from_messages(VALIDATION_FAILED, errors)

    messages = build_messages(request, manifest)
    try:
        response = client.generate(messages, model=model)
    except LLMError as exc:
        _log.error("Provider call failed (status=%s): %s", exc.status, exc)
        return GenerationFailure(reason=str(exc))

    pipeline = GenerationPipeline(
        manifest,
        policy=policy if policy is not None else load_settings().failure_policy,
        rng=rng,
    )
    return pipeline.run(response.text, usage=response.usage)


__all__ = [
    "AUTO_FIX_FAILED",
    "VALIDATION_FAILED",
    "FailurePolicy",
    "GenerationPipeline",
    "PipelineState",
    "build_fallback_block",
    "generate_page",
    "validate_request",
]
