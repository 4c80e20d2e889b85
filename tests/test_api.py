# tests/test_api.py
"""
Integration Tests for the PageSmith HTTP API.

These tests verify the HTTP contract (request/response schemas and status
codes). The provider is replaced through FastAPI's dependency overrides, so
no network call is made; `/repair` runs the real offline pipeline.
"""

from __future__ import annotations

import json
from collections.abc import Generator, Mapping, Sequence
from typing import Any, Final

import pytest
from fastapi.testclient import TestClient

from pagesmith import __version__ as PKG_VERSION
from pagesmith.api.app import create_app
from pagesmith.api.routers.generate import get_llm_client
from pagesmith.core.contracts.generation import TokenUsage
from pagesmith.llm.client import LLMError, LLMResponse
from pagesmith.manifest.loader import DEFAULT_MANIFEST_PATH, ManifestStore

ALLOWED_ENVS: Final[set[str]] = {"dev", "test", "prod"}

REPLY = json.dumps(
    {
        "contentBlocks": [
            {"_type": "hero", "headline": "Elpriser", "subheadline": "Dagens priser"},
            {"_type": "pageSection", "title": "Om elpris", "content": "Spotprisen varierer."},
        ]
    }
)


class FakeClient:
    """Stands in for `LLMClient`; records the messages it was given."""

    def __init__(self, text: str = REPLY, error: LLMError | None = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[Sequence[Mapping[str, str]]] = []

    def generate(
        self, messages: Sequence[Mapping[str, str]], *, model: str | None = None
    ) -> LLMResponse:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        usage = TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150)
        return LLMResponse(text=self.text, usage=usage, model=model or "fake")


@pytest.fixture  # type: ignore[misc]
def client() -> Generator[TestClient, None, None]:
    """Fresh app and manifest store for each test."""
    ManifestStore._instance = None
    app = create_app()
    with TestClient(app) as c:
        yield c
    ManifestStore._instance = None


def _use_client(client: TestClient, fake: FakeClient) -> None:
    client.app.dependency_overrides[get_llm_client] = lambda: fake  # type: ignore[attr-defined]


def test_health_endpoint_contract(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200

    data = resp.json()
    assert data["status"] == "ok"
    assert data["environment"] in ALLOWED_ENVS
    assert data["version"] == PKG_VERSION


def test_manifest_summary(client: TestClient) -> None:
    data = client.get("/manifest").json()

    assert data["mandatoryTypes"] == ["hero", "pageSection"]
    hero = next(b for b in data["blockTypes"] if b["type"] == "hero")
    assert hero["requiredFields"] == ["headline", "subheadline"]
    assert hero["mandatory"] is True


def test_manifest_can_be_replaced(client: TestClient) -> None:
    document = json.loads(DEFAULT_MANIFEST_PATH.read_text(encoding="utf-8"))
    document["version"] = "custom-1"

    resp = client.put("/manifest", json=document)

    assert resp.status_code == 200
    assert client.get("/manifest").json()["version"] == "custom-1"


def test_malformed_manifest_upload_is_rejected(client: TestClient) -> None:
    resp = client.put("/manifest", json={"blocks": []})

    assert resp.status_code == 400
    assert "contentBlockTypes" in resp.json()["detail"]
    assert client.get("/manifest").json()["version"] == "2024.12"


def test_repair_success(client: TestClient) -> None:
    resp = client.post("/repair", json={"text": f"```json\n{REPLY}\n```", "seed": 4})

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert [b["_type"] for b in data["contentBlocks"]] == ["hero", "pageSection"]
    assert all(b["_key"] for b in data["contentBlocks"])
    assert any(r["kind"] == "fixed" for r in data["repairs"])


def test_repair_failure_and_fallback(client: TestClient) -> None:
    failed = client.post("/repair", json={"text": "not json at all"})
    fallback = client.post("/repair", json={"text": "not json at all", "policy": "fallback"})

    assert failed.status_code == 422
    assert failed.json()["success"] is False
    assert failed.json()["reason"].startswith("Auto-fix failed")

    assert fallback.status_code == 200
    assert fallback.json()["fallbackUsed"] is True
    assert len(fallback.json()["contentBlocks"]) == 1


def test_unknown_policy_is_a_bad_request(client: TestClient) -> None:
    resp = client.post("/repair", json={"text": REPLY, "policy": "retry"})
    assert resp.status_code == 400


def test_generate_uses_provider_and_passes_usage(client: TestClient) -> None:
    fake = FakeClient()
    _use_client(client, fake)

    resp = client.post(
        "/generate",
        json={
            "topic": "Elpriser i dag",
            "keywords": ["elpris", "spotpris"],
            "contentGoal": "compare",
            "optionalBlocks": ["faqGroup"],
        },
    )

    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["success"] is True
    assert data["usage"]["total_tokens"] == 150
    assert len(fake.calls) == 1
    system_prompt = fake.calls[0][0]["content"]
    assert "TOPIC: Elpriser i dag" in system_prompt


def test_generate_rejects_invalid_request_before_calling_provider(client: TestClient) -> None:
    fake = FakeClient()
    _use_client(client, fake)

    resp = client.post("/generate", json={"topic": " ", "optionalBlocks": ["carousel"]})

    assert resp.status_code == 400
    data: dict[str, Any] = resp.json()
    assert data["reason"].startswith("Validation failed")
    assert "Topic is required" in data["warnings"]
    assert "At least one keyword is required" in data["warnings"]
    assert data["warnings"][0].startswith("Invalid block types requested: carousel")
    assert fake.calls == []


def test_generate_maps_provider_errors_to_bad_gateway(client: TestClient) -> None:
    _use_client(client, FakeClient(error=LLMError("API Error: 429 - Rate limited", status=429)))

    resp = client.post("/generate", json={"topic": "Elpriser", "keywords": ["elpris"]})

    assert resp.status_code == 502
    assert resp.json()["reason"] == "API Error: 429 - Rate limited"
