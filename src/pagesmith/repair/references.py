"""
Reference sanitizer.

Models decorate reference objects with whatever they think is helpful
(provider names, URLs, ``"title"``), or spell the system keys without the
leading underscore. The CMS rejects any of that, so every mapping that looks
like a reference is reduced to ``_type``/``_ref``/``_key``/``_weak``.

The walk is depth-first: lists element by element, mappings key by key.
Mappings that are references are not descended into. The input is never
mutated; a new object graph is returned along with the number of
references that were changed. Running the sanitizer twice changes nothing
the second time.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pagesmith.core.contracts.block import REFERENCE_KEYS

#: Bare spellings of the reference system keys.
REFERENCE_ALIASES: dict[str, str] = {
    "type": "_type",
    "ref": "_ref",
    "key": "_key",
    "weak": "_weak",
}

Reporter = Callable[[str, str], None]


def looks_like_reference(value: Any) -> bool:
    """Return True if ``value`` is a mapping the sanitizer treats as a reference."""
    if not isinstance(value, Mapping):
        return False
    if "_ref" in value or "ref" in value:
        return True
    return value.get("_type") == "reference" or value.get("type") == "reference"


def _sanitize_one(ref: Mapping[str, Any]) -> tuple[dict[str, Any], list[str]]:
    changes: list[str] = []
    out: dict[str, Any] = {}

    for name, value in ref.items():
        if name in REFERENCE_KEYS:
            out[name] = value
    for alias, canonical in REFERENCE_ALIASES.items():
        if alias not in ref:
            continue
        if canonical in ref:
            changes.append(f"dropped alias {alias!r} shadowed by {canonical!r}")
        else:
            out[canonical] = ref[alias]
            changes.append(f"renamed {alias!r} to {canonical!r}")

    removed = [k for k in ref if k not in REFERENCE_KEYS and k not in REFERENCE_ALIASES]
    if removed:
        changes.append(f"removed invalid keys [{', '.join(map(str, removed))}]")

    if "_ref" in out and not isinstance(out["_ref"], str):
        changes.append(f"removed non-string _ref {out['_ref']!r}")
        del out["_ref"]
    if "_ref" in out and out.get("_type") != "reference":
        changes.append("set _type to 'reference'")
        out["_type"] = "reference"

    # Canonical key order keeps the output stable across passes.
    ordered = {k: out[k] for k in REFERENCE_KEYS if k in out}
    return ordered, changes


def sanitize_references(
    value: Any, path: str = "", report: Reporter | None = None
) -> tuple[Any, int]:
    """Return a sanitized copy of ``value`` and the number of references changed.

    Parameters
    ----------
    value:
        Any JSON-like object graph (a block, a field value, a list).
    path:
        Location of ``value`` for log messages, e.g. ``"providers"``.
    report:
        Optional ``report(path, message)`` callback invoked once per changed
        reference.

    Returns
    -------
    tuple[Any, int]
        The new object graph and the count of sanitized references.
    """
    if isinstance(value, list):
        items: list[Any] = []
        total = 0
        for index, item in enumerate(value):
            clean, count = sanitize_references(item, f"{path}[{index}]", report)
            items.append(clean)
            total += count
        return items, total

    if not isinstance(value, Mapping):
        return value, 0

    if looks_like_reference(value):
        clean_ref, changes = _sanitize_one(value)
        if not changes:
            return clean_ref, 0
        if report is not None:
            report(path or "(root)", "; ".join(changes))
        return clean_ref, 1

    out: dict[str, Any] = {}
    total = 0
    for name, child in value.items():
        child_path = f"{path}.{name}" if path else str(name)
        out[name], count = sanitize_references(child, child_path, report)
        total += count
    return out, total


__all__ = ["REFERENCE_ALIASES", "looks_like_reference", "sanitize_references"]
