"""
NDJSON export for Sanity imports.

Wraps a compliant block list into one ``page`` document and serializes it as
newline-delimited JSON, the format ``sanity dataset import`` consumes::

    {"_id": "3f2b...", "_type": "page", "title": "...", "contentBlocks": [...]}

Blocks are exported as produced by the pipeline; this module does not
repair or validate them again.
"""

from __future__ import annotations

import json
import re
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pagesmith.core.contracts.block import ContentBlock

#: Danish letters spelled out before slugging.
_TRANSLITERATIONS: tuple[tuple[str, str], ...] = (("æ", "ae"), ("ø", "oe"), ("å", "aa"))
_NON_SLUG = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Turn a page title into a URL slug.

    Examples
    --------
    >>> slugify("Få den bedste elpris på Sjælland")
    'faa-den-bedste-elpris-paa-sjaelland'
    """
    slug = title.lower()
    for letter, spelled in _TRANSLITERATIONS:
        slug = slug.replace(letter, spelled)
    return _NON_SLUG.sub("-", slug).strip("-")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class PageMetadata:
    """Page-level fields of the exported document."""

    title: str
    topic: str
    keywords: tuple[str, ...] = ()
    content_goal: str = "educate"
    language: str = "da"


def _serialize(block: ContentBlock | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(block, ContentBlock):
        return block.to_sanity()
    return dict(block)


def build_sanity_document(
    blocks: Iterable[ContentBlock | Mapping[str, Any]],
    metadata: PageMetadata,
    *,
    doc_type: str = "page",
    published_at: str | None = None,
    doc_id: str | None = None,
    now: Callable[[], str] = _utc_now,
) -> dict[str, Any]:
    """Build one Sanity document holding ``blocks``.

    Parameters
    ----------
    blocks:
        Compliant blocks, as :class:`ContentBlock` or serialized mappings.
    metadata:
        Title, topic, keywords and content goal of the page.
    doc_type:
        Sanity document type.
    published_at:
        ISO timestamp; when given the document is marked as published.
    doc_id:
        Explicit ``_id``; a random hex id is generated otherwise.
    now:
        Timestamp source for ``_createdAt``/``_updatedAt``/``generatedAt``.
    """
    timestamp = now()
    document: dict[str, Any] = {
        "_id": doc_id or uuid.uuid4().hex,
        "_type": doc_type,
        "_createdAt": timestamp,
        "_updatedAt": timestamp,
        "title": metadata.title,
        "slug": {"_type": "slug", "current": slugify(metadata.title)},
        "seoTitle": metadata.title,
        "seoDescription": f"{metadata.topic} - {', '.join(metadata.keywords[:3])}",
        "keywords": list(metadata.keywords),
        "contentBlocks": [_serialize(b) for b in blocks],
        "language": metadata.language,
        "contentGoal": metadata.content_goal,
        "generatedAt": timestamp,
    }
    if published_at:
        document["publishedAt"] = published_at
        document["_status"] = "published"
    return document


def to_ndjson(documents: Sequence[Mapping[str, Any]]) -> str:
    """One compact JSON document per line, no trailing newline."""
    return "\n".join(json.dumps(doc, ensure_ascii=False) for doc in documents)


def build_ndjson(
    blocks: Iterable[ContentBlock | Mapping[str, Any]],
    metadata: PageMetadata,
    **options: Any,
) -> tuple[str, dict[str, Any]]:
    """Return ``(ndjson_text, document)`` for a single generated page."""
    document = build_sanity_document(blocks, metadata, **options)
    return to_ndjson([document]), document


__all__ = ["PageMetadata", "build_ndjson", "build_sanity_document", "slugify", "to_ndjson"]
