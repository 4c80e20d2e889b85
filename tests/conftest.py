"""Shared fixtures: the bundled manifest, deterministic randomness, and keys."""

from __future__ import annotations

import random
from typing import Any

import pytest

from pagesmith.core.contracts.manifest import SchemaManifest
from pagesmith.manifest.loader import DEFAULT_MANIFEST_PATH, load_manifest
from pagesmith.repair.field_types import make_paragraph
from pagesmith.repair.keys import KeyFactory

FIXED_TS = 1735551600.0

PREFERRED_PROVIDER = "63c05ca2-cd1e-4f00-b544-6a2077d4031a"
OTHER_PROVIDERS = (
    "9451a43b-6e68-4914-945c-73a81a508214",
    "9526e0ba-cbe8-4526-9abc-7dabb4756b2b",
    "a6541984-3dbb-466a-975b-badba029e139",
)


@pytest.fixture(scope="session")  # type: ignore[misc]
def manifest() -> SchemaManifest:
    """The manifest shipped with the package (14 block types)."""
    return load_manifest(DEFAULT_MANIFEST_PATH)


@pytest.fixture  # type: ignore[misc]
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture  # type: ignore[misc]
def keys(rng: random.Random) -> KeyFactory:
    return KeyFactory(rng, clock=lambda: FIXED_TS)


def hero(key: str = "hero-1", **extra: Any) -> dict[str, Any]:
    block: dict[str, Any] = {
        "_type": "hero",
        "_key": key,
        "headline": "Elpriser i dag",
        "subheadline": "Find den billigste elaftale",
    }
    block.update(extra)
    return block


def page_section(key: str = "section-1", **extra: Any) -> dict[str, Any]:
    block: dict[str, Any] = {
        "_type": "pageSection",
        "_key": key,
        "title": "Sådan fungerer elprisen",
        "content": [make_paragraph("Elprisen består af spotpris, afgifter og nettarif.")],
    }
    block.update(extra)
    return block
