"""
API Routes for page generation and offline repair.

Endpoints
---------
- `POST /generate`: validate the request, call the provider, repair, validate.
- `POST /repair`: run the pipeline over a raw model reply (no provider call).

Status codes
------------
Both endpoints answer with a :class:`GenerationResponse` envelope:

- ``200`` for a success (including fallback output);
- ``400`` when request preconditions fail;
- ``422`` when the repaired output is still not compliant;
- ``502`` when the provider call failed.

Handlers are plain ``def`` so FastAPI runs the blocking provider call in its
thread pool.
"""

from __future__ import annotations

import random
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from pagesmith.api.schemas import GenerateBody, GenerationResponse, RepairBody
from pagesmith.core.contracts.generation import GenerationFailure, GenerationResult
from pagesmith.llm.client import LLMClient
from pagesmith.manifest.loader import get_manifest_store
from pagesmith.pipelines.generation import (
    AUTO_FIX_FAILED,
    VALIDATION_FAILED,
    FailurePolicy,
    GenerationPipeline,
    generate_page,
)

router = APIRouter(tags=["Generation"])


def get_llm_client() -> LLMClient:
    """Dependency: provider client built from settings (overridden in tests)."""
    return LLMClient.from_env()


def _status_for(result: GenerationResult) -> int:
    if not isinstance(result, GenerationFailure):
        return status.HTTP_200_OK
    if result.reason.startswith(VALIDATION_FAILED):
        return status.HTTP_400_BAD_REQUEST
    if result.reason.startswith(AUTO_FIX_FAILED):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    return status.HTTP_502_BAD_GATEWAY


@router.post(
    "/generate",
    response_model=GenerationResponse,
    summary="Generate one page with the configured model",
)
def generate(
    body: GenerateBody,
    response: Response,
    client: Annotated[LLMClient, Depends(get_llm_client)],
) -> GenerationResponse:
    """
    Generate a page and return compliant content blocks.

    The active manifest is captured once; a concurrent manifest swap does
    not affect this request.
    """
    manifest = get_manifest_store().current()
    result = generate_page(
        body.to_request(manifest),
        client,
        model=body.model,
        policy=FailurePolicy(body.policy) if body.policy else None,
    )
    response.status_code = _status_for(result)
    return GenerationResponse.from_result(result)


@router.post(
    "/repair",
    response_model=GenerationResponse,
    summary="Repair and validate a raw model reply",
)
def repair(body: RepairBody, response: Response) -> GenerationResponse:
    """Run extraction, repair and validation over ``body.text``."""
    pipeline = GenerationPipeline(
        get_manifest_store().current(),
        policy=FailurePolicy(body.policy) if body.policy else FailurePolicy.FAIL,
        rng=random.Random(body.seed) if body.seed is not None else None,
    )
    result = pipeline.run(body.text)
    response.status_code = _status_for(result)
    return GenerationResponse.from_result(result)
