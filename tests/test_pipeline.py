"""End-to-end tests for the generation pipeline (offline, no provider calls).

The pipeline must never hand back an empty success: every reply ends either
in a non-empty compliant block list or in an explicit failure, and the
fallback policy turns the latter into one synthesized block.
"""

from __future__ import annotations

import json
import random

import pytest
from conftest import FIXED_TS

from pagesmith.core.contracts.generation import GenerationFailure, GenerationSuccess, TokenUsage
from pagesmith.core.contracts.manifest import SchemaManifest
from pagesmith.pipelines.generation import (
    FailurePolicy,
    GenerationPipeline,
    PipelineState,
    build_fallback_block,
)
from pagesmith.validation.validator import validate_blocks

UNUSABLE_REPLIES = ["", '{"contentBlocks": [{"_type": "hero"', "not json at all"]


def _pipeline(
    manifest: SchemaManifest, policy: FailurePolicy | str = "fail", seed: int = 11
) -> GenerationPipeline:
    return GenerationPipeline(
        manifest, policy=policy, rng=random.Random(seed), clock=lambda: FIXED_TS
    )


def test_direct_json_reply_succeeds(manifest: SchemaManifest) -> None:
    raw = (
        '{"contentBlocks":[{"_type":"hero","headline":"Elpriser",'
        '"subheadline":"Find den billigste elaftale"}]}'
    )
    pipeline = _pipeline(manifest)
    usage = TokenUsage(prompt_tokens=10, completion_tokens=20, total_tokens=30)

    result = pipeline.run(raw, usage=usage)

    assert isinstance(result, GenerationSuccess)
    (block,) = result.blocks
    assert block.type == "hero"
    assert block.key.startswith("hero-")
    assert block.fields["headline"] == "Elpriser"
    assert result.usage == usage
    assert not result.fallback_used
    assert pipeline.transitions == [
        PipelineState.EXTRACTING,
        PipelineState.REPAIRING,
        PipelineState.VALIDATING,
        PipelineState.DONE_SUCCESS,
    ]


def test_fenced_reply_with_prose_is_reordered(manifest: SchemaManifest) -> None:
    payload = {
        "contentBlocks": [
            {"_type": "pageSection", "title": "Om elpriser", "content": "Spotprisen..."},
            {"_type": "hero", "headline": "Elpriser", "subheadline": "Dagens priser"},
        ]
    }
    raw = f"Sure! Here is your page:\n```json\n{json.dumps(payload)}\n```\nEnjoy."

    result = _pipeline(manifest).run(raw)

    assert result.is_ok()
    assert [b.type for b in result.unwrap()] == ["hero", "pageSection"]
    document = result.to_payload()  # type: ignore[attr-defined]
    assert validate_blocks(document["contentBlocks"], manifest).compliant


@pytest.mark.parametrize("raw", UNUSABLE_REPLIES)  # type: ignore[misc]
def test_unusable_reply_fails_explicitly(manifest: SchemaManifest, raw: str) -> None:
    pipeline = _pipeline(manifest, policy="fail")

    result = pipeline.run(raw)

    assert isinstance(result, GenerationFailure)
    assert result.reason.startswith("Auto-fix failed")
    assert "No valid content blocks after repair" in result.warnings
    assert pipeline.state is PipelineState.DONE_FAILURE


@pytest.mark.parametrize("raw", UNUSABLE_REPLIES)  # type: ignore[misc]
def test_unusable_reply_falls_back_to_one_block(manifest: SchemaManifest, raw: str) -> None:
    pipeline = _pipeline(manifest, policy=FailurePolicy.FALLBACK)

    result = pipeline.run(raw)

    assert isinstance(result, GenerationSuccess)
    assert result.fallback_used
    (block,) = result.blocks
    assert block.type == "hero"
    assert block.fields["headline"].startswith("Content could not be generated")
    assert validate_blocks([block.to_sanity()], manifest).compliant
    assert pipeline.state is PipelineState.DONE_FALLBACK
    assert any(e.kind == "violation" for e in result.repairs)


def test_non_compliant_output_carries_every_warning(manifest: SchemaManifest) -> None:
    raw = '[{"_type": "hero", "headline": "Kun overskrift"}, {"_type": "pageSection"}]'

    result = _pipeline(manifest).run(raw)

    assert isinstance(result, GenerationFailure)
    assert 'Block 0 (hero): Missing required field "subheadline"' in result.warnings
    assert 'Block 1 (pageSection): Missing required field "content"' in result.warnings
    assert all(w in result.reason for w in result.warnings)


def test_same_seed_and_clock_give_identical_output(manifest: SchemaManifest) -> None:
    raw = json.dumps(
        {
            "contentBlocks": [
                {"_type": "hero", "headline": "H", "subheadline": "S"},
                {"_type": "providerList", "title": "Udbydere", "providers": ["a", "b"]},
            ]
        }
    )

    first = _pipeline(manifest, seed=3).run(raw)
    second = _pipeline(manifest, seed=3).run(raw)

    assert first.to_payload() == second.to_payload()  # type: ignore[attr-defined]


def test_fallback_block_uses_first_synthesizable_mandatory_type(
    manifest: SchemaManifest,
) -> None:
    block = build_fallback_block(manifest, "timeout")

    assert block["_type"] == "hero"
    assert block["headline"] == "Content could not be generated: timeout"
    assert block["subheadline"] == block["headline"]
    assert validate_blocks([block], manifest).compliant
