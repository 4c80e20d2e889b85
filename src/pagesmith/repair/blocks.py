"""
Block-specific repairers and universal safeguards.

These run after field coercion and correct structural problems that a
per-field view cannot see:

- **Inline record lists** (``faqGroup.faqItems``): the CMS needs each FAQ
  entry inline; models often emit bare references or half-filled records.
- **Whitelisted references** (``providerList.providers``): only a fixed set
  of document ids may appear, and the preferred id must come first.
- **Universal safeguards**: omitted fields, string-valued icons, and
  mandatory-first ordering.

Each function receives a block it may treat as its own (the engine works on
a deep copy) and returns the repaired block. Corrections are recorded on the
supplied :class:`~pagesmith.core.contracts.repair.RepairLog`.
"""

from __future__ import annotations

import random
from collections.abc import Mapping, Sequence
from typing import Any

from pagesmith.core.contracts.block import ReferenceObject
from pagesmith.core.contracts.manifest import (
    FieldTypeTag,
    RecordListRule,
    ReferenceAllowList,
    SchemaManifest,
)
from pagesmith.core.contracts.repair import RepairLog
from pagesmith.extraction.extractor import canonical_block

from .coercion import coerce_field
from .field_types import is_empty, is_reference, make_paragraph
from .keys import KeyFactory
from .references import looks_like_reference

# ===========================================================================
# Inline record lists
# ===========================================================================


def _salvage_record(
    item: Any, rule: RecordListRule, keys: KeyFactory
) -> tuple[dict[str, Any] | None, str]:
    """Return ``(record, note)``; ``record`` is ``None`` if unsalvageable."""
    if looks_like_reference(item):
        return None, "bare reference where an inline record is required"
    if not isinstance(item, Mapping):
        return None, f"not an object ({type(item).__name__})"

    record = canonical_block(dict(item))

    question = coerce_field(FieldTypeTag.STRING, record.get(rule.text_field))
    if question.outcome == "drop" or is_empty(question.value):
        return None, f'missing "{rule.text_field}" text'
    answer = coerce_field(FieldTypeTag.RICH_TEXT_ARRAY, record.get(rule.rich_text_field), keys=keys)
    if answer.outcome == "drop" or is_empty(answer.value):
        return None, f'missing "{rule.rich_text_field}" rich text'

    notes: list[str] = []
    if question.outcome == "fixed":
        notes.append(f'flattened "{rule.text_field}"')
    if answer.outcome == "fixed":
        notes.append(f'wrapped "{rule.rich_text_field}"')
    if record.get("_type") != rule.record_type:
        notes.append(f"set _type to {rule.record_type!r}")

    record[rule.text_field] = question.value
    record[rule.rich_text_field] = answer.value
    record["_type"] = rule.record_type
    return record, ", ".join(notes)


def placeholder_record(rule: RecordListRule, keys: KeyFactory) -> dict[str, Any]:
    """Build the single apology record used when no record survives repair."""
    return {
        "_type": rule.record_type,
        "_key": keys.new_key(rule.record_type),
        rule.text_field: rule.placeholder_text,
        rule.rich_text_field: [make_paragraph(rule.placeholder_rich_text, keys)],
    }


def repair_record_list(
    block: dict[str, Any],
    rule: RecordListRule,
    *,
    block_index: int,
    log: RepairLog,
    keys: KeyFactory,
) -> dict[str, Any]:
    """Make ``block[rule.field]`` a non-empty list of well-formed inline records.

    Bare references and structurally invalid records are dropped (logged as
    violations); salvageable records are coerced. If nothing survives,
    exactly one placeholder record is inserted.
    """
    block_type = str(block.get("_type", ""))
    raw = block.get(rule.field)
    if raw is not None and not isinstance(raw, list):
        log.violation(
            block_index,
            block_type,
            f'field "{rule.field}" is not a list; discarded',
            field=rule.field,
        )
    items = raw if isinstance(raw, list) else []

    records: list[dict[str, Any]] = []
    seen_keys: set[str] = set()
    for position, item in enumerate(items):
        record, note = _salvage_record(item, rule, keys)
        if record is None:
            log.violation(
                block_index,
                block_type,
                f'{rule.field}[{position}] dropped: {note}',
                field=rule.field,
            )
            continue
        key = record.get("_key")
        if not isinstance(key, str) or not key.strip() or key in seen_keys:
            record["_key"] = keys.new_key(rule.record_type)
            note = f"{note}, generated _key" if note else "generated _key"
        seen_keys.add(record["_key"])
        if note:
            log.fixed(block_index, block_type, f"{rule.field}[{position}] {note}", field=rule.field)
        records.append(record)

    if not records:
        records = [placeholder_record(rule, keys)]
        log.violation(
            block_index,
            block_type,
            f'field "{rule.field}" had no valid {rule.record_type} records; inserted placeholder',
            field=rule.field,
        )

    block[rule.field] = records
    return block


# ===========================================================================
# Whitelisted references
# ===========================================================================


def allow_list_problem(value: Any, rule: ReferenceAllowList) -> str | None:
    """Return why ``value`` breaks ``rule``, or ``None`` if it complies."""
    if not isinstance(value, list) or not value:
        return "missing or empty"
    if len(value) > rule.max_entries:
        return f"{len(value)} entries exceed the maximum of {rule.max_entries}"
    seen: set[str] = set()
    for position, entry in enumerate(value):
        if not is_reference(entry):
            return f"entry {position} is not a reference"
        ref = entry["_ref"]
        if ref not in rule.allowed:
            return f"entry {position} references {ref!r}, which is not on the allow-list"
        if ref in seen:
            return f"entry {position} duplicates {ref!r}"
        seen.add(ref)
    if value[0]["_ref"] != rule.preferred:
        return f"first entry must reference the preferred id {rule.preferred!r}"
    return None


def fresh_selection(
    rule: ReferenceAllowList, rng: random.Random, keys: KeyFactory
) -> list[dict[str, Any]]:
    """Preferred id first, then the other allowed ids shuffled, capped at ``max_entries``."""
    others = [ref for ref in rule.allowed if ref != rule.preferred]
    rng.shuffle(others)
    chosen = [rule.preferred, *others][: rule.max_entries]
    return [
        ReferenceObject.model_validate(
            {"_type": "reference", "_ref": ref, "_key": keys.new_key("ref")}
        ).to_sanity()
        for ref in chosen
    ]


def repair_allow_list(
    block: dict[str, Any],
    rule: ReferenceAllowList,
    *,
    block_index: int,
    log: RepairLog,
    rng: random.Random,
    keys: KeyFactory,
) -> dict[str, Any]:
    """Replace a non-compliant allow-listed reference array with a fresh selection."""
    problem = allow_list_problem(block.get(rule.field), rule)
    if problem is None:
        return block
    selection = fresh_selection(rule, rng, keys)
    block[rule.field] = selection
    log.violation(
        block_index,
        str(block.get("_type", "")),
        f'field "{rule.field}" {problem}; replaced with {len(selection)} allowed references',
        field=rule.field,
    )
    return block


# ===========================================================================
# Universal safeguards
# ===========================================================================


def strip_omitted_fields(
    value: Any, manifest: SchemaManifest, *, top_level_type: str | None = None
) -> tuple[Any, list[str]]:
    """Remove manifest ``omit_fields`` from a block and from nested typed objects.

    Returns the cleaned value and the dotted paths that were removed.
    """
    removed: list[str] = []

    def walk(node: Any, path: str, own_type: str | None) -> Any:
        if isinstance(node, list):
            return [walk(item, f"{path}[{i}]", None) for i, item in enumerate(node)]
        if not isinstance(node, Mapping):
            return node
        node_type = own_type if own_type is not None else node.get("_type")
        spec = manifest.get_spec(node_type) if isinstance(node_type, str) else None
        omit = spec.omit_fields if spec is not None else frozenset()
        out: dict[str, Any] = {}
        for name, child in node.items():
            child_path = f"{path}.{name}" if path else str(name)
            if name in omit:
                removed.append(child_path)
                continue
            out[name] = walk(child, child_path, None)
        return out

    return walk(value, "", top_level_type), removed


def strip_string_icons(value: Any, path: str = "") -> tuple[Any, list[str]]:
    """Remove every ``icon`` key whose value is a plain string, at any depth."""
    removed: list[str] = []

    def walk(node: Any, here: str) -> Any:
        if isinstance(node, list):
            return [walk(item, f"{here}[{i}]") for i, item in enumerate(node)]
        if not isinstance(node, Mapping):
            return node
        out: dict[str, Any] = {}
        for name, child in node.items():
            child_path = f"{here}.{name}" if here else str(name)
            if name == "icon" and isinstance(child, str):
                removed.append(child_path)
                continue
            out[name] = walk(child, child_path)
        return out

    return walk(value, path), removed


def order_mandatory_first(
    blocks: Sequence[dict[str, Any]], manifest: SchemaManifest
) -> list[dict[str, Any]]:
    """Stable reorder: mandatory blocks first in manifest order, then the rest."""
    mandatory = manifest.mandatory_types
    head: list[dict[str, Any]] = []
    for block_type in mandatory:
        head.extend(b for b in blocks if b.get("_type") == block_type)
    tail = [b for b in blocks if b.get("_type") not in mandatory]
    return head + tail


__all__ = [
    "allow_list_problem",
    "fresh_selection",
    "order_mandatory_first",
    "placeholder_record",
    "repair_allow_list",
    "repair_record_list",
    "strip_omitted_fields",
    "strip_string_icons",
]
