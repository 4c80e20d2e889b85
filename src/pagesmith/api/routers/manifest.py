"""
API Routes for the schema manifest.

- `GET /manifest`: summary of the active manifest.
- `PUT /manifest`: replace the active manifest with an uploaded document.

A malformed upload raises :class:`~pagesmith.manifest.loader.ManifestError`
(a ``ValueError``), which the application maps to ``400``. The previous
manifest stays active in that case.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body

from pagesmith.api.schemas import ManifestOut
from pagesmith.manifest.loader import get_manifest_store, parse_manifest

router = APIRouter(prefix="/manifest", tags=["Manifest"])


@router.get("", response_model=ManifestOut, summary="Describe the active manifest")
def read_manifest() -> ManifestOut:
    return ManifestOut.from_manifest(get_manifest_store().current())


@router.put("", response_model=ManifestOut, summary="Replace the active manifest")
def replace_manifest(document: Annotated[dict[str, Any], Body()]) -> ManifestOut:
    manifest = parse_manifest(document)
    get_manifest_store().swap(manifest)
    return ManifestOut.from_manifest(manifest)
