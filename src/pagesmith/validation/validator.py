"""
Compliance validator.

Read-only check of a block list against a manifest. Warnings use the same
wording editors see in the CMS import log, e.g.::

    Block 2 (faqGroup): Missing required field "title"

Per-block checks (an unknown type stops checking that block):

1. ``_type`` present and known;
2. ``_key`` present;
3. required fields present and non-empty;
4. typed fields satisfy their tag predicate;
5. enum fields hold an allowed value;
6. allow-listed reference fields stay on the allow-list, preferred first;
7. inline record lists hold only well-formed records.

Document-level checks: mandatory blocks precede optional ones (and the
first mandatory type precedes the second), and no two blocks share a key.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pagesmith.core.contracts.block import ValidationReport, ValidationWarning
from pagesmith.core.contracts.manifest import (
    FieldTypeTag,
    RecordListRule,
    SchemaManifest,
)
from pagesmith.repair.blocks import allow_list_problem
from pagesmith.repair.field_types import (
    is_empty,
    is_rich_text_array,
    is_string,
    is_valid,
)

_TAG_DESCRIPTIONS: dict[FieldTypeTag, str] = {
    FieldTypeTag.STRING: "a string",
    FieldTypeTag.NUMBER: "a finite number",
    FieldTypeTag.STRING_ARRAY: "an array of strings",
    FieldTypeTag.RICH_TEXT_ARRAY: "an array of Portable Text blocks",
    FieldTypeTag.REFERENCE_ARRAY: "an array of reference objects",
    FieldTypeTag.IMAGE_REF: "an image object with asset._ref",
    FieldTypeTag.OPTIONAL_IMAGE_REF: "null or an image object with asset._ref",
    FieldTypeTag.ICON_REF: "an icon.manager object with _type 'icon.manager' and an icon",
}


class _Collector:
    def __init__(self) -> None:
        self.warnings: list[ValidationWarning] = []

    def add(self, index: int, block_type: str, message: str, field: str | None = None) -> None:
        prefix = f"Block {index} ({block_type})" if block_type else f"Block {index}"
        self.warnings.append(
            ValidationWarning(
                block_index=index,
                block_type=block_type,
                field=field,
                message=f"{prefix}: {message}",
            )
        )


def _check_records(
    value: Any, rule: RecordListRule, index: int, block_type: str, out: _Collector
) -> None:
    if not isinstance(value, list):
        return
    for position, record in enumerate(value):
        label = f'Field "{rule.field}" item {position}'
        if not isinstance(record, Mapping) or record.get("_type") != rule.record_type:
            out.add(index, block_type, f"{label} must be an inline {rule.record_type}", rule.field)
            continue
        if not isinstance(record.get("_key"), str) or not record["_key"]:
            out.add(index, block_type, f"{label} is missing _key", rule.field)
        text = record.get(rule.text_field)
        if not is_string(text) or is_empty(text):
            out.add(index, block_type, f'{label} is missing "{rule.text_field}"', rule.field)
        rich = record.get(rule.rich_text_field)
        if not is_rich_text_array(rich) or is_empty(rich):
            out.add(
                index, block_type, f'{label} is missing "{rule.rich_text_field}"', rule.field
            )


def _check_block(block: Any, index: int, manifest: SchemaManifest, out: _Collector) -> str | None:
    """Validate one block; return its type if it is known, else ``None``."""
    if not isinstance(block, Mapping):
        out.add(index, "", "Not an object")
        return None

    block_type = block.get("_type")
    if not isinstance(block_type, str) or not block_type:
        out.add(index, "", "Missing _type field")
        return None
    spec = manifest.get_spec(block_type)
    if spec is None:
        out.add(index, block_type, f'Unknown block type "{block_type}"')
        return None

    key = block.get("_key")
    if not isinstance(key, str) or not key.strip():
        out.add(index, block_type, "Missing _key field")

    for name in sorted(spec.required_fields):
        if name not in block or is_empty(block[name]):
            out.add(index, block_type, f'Missing required field "{name}"', name)

    for name, tag in spec.typed_fields().items():
        if name not in block:
            continue
        value = block[name]
        if tag is FieldTypeTag.ENUM:
            allowed = spec.field_enums.get(name, ())
            if not is_valid(tag, value, allowed):
                out.add(
                    index,
                    block_type,
                    f'Field "{name}" must be one of: {", ".join(allowed)}',
                    name,
                )
        elif not is_valid(tag, value):
            out.add(index, block_type, f'Field "{name}" must be {_TAG_DESCRIPTIONS[tag]}', name)

    for rule in manifest.allow_lists:
        if rule.block_type != block_type or rule.field not in block:
            continue
        problem = allow_list_problem(block[rule.field], rule)
        if problem is not None:
            out.add(index, block_type, f'Field "{rule.field}" {problem}', rule.field)

    for record_rule in manifest.record_lists_for(block_type):
        _check_records(block.get(record_rule.field), record_rule, index, block_type, out)

    return block_type


def validate_blocks(blocks: Sequence[Any], manifest: SchemaManifest) -> ValidationReport:
    """Check ``blocks`` against ``manifest`` without modifying anything.

    Parameters
    ----------
    blocks:
        Serialized blocks (``{"_type", "_key", ...}`` mappings).
    manifest:
        Manifest snapshot to check against.

    Returns
    -------
    ValidationReport
        ``compliant`` is True iff no warning was produced.
    """
    out = _Collector()
    mandatory = manifest.mandatory_types
    seen_optional = False
    highest_rank = -1
    keys: dict[str, int] = {}

    for index, block in enumerate(blocks):
        block_type = _check_block(block, index, manifest, out)
        if block_type is None:
            continue

        if block_type in mandatory:
            rank = mandatory.index(block_type)
            if seen_optional:
                out.add(index, block_type, "Mandatory block must precede all optional blocks")
            elif rank < highest_rank:
                out.add(
                    index,
                    block_type,
                    f'Mandatory block must precede "{mandatory[highest_rank]}"',
                )
            highest_rank = max(highest_rank, rank)
        else:
            seen_optional = True

        key = block.get("_key")
        if isinstance(key, str) and key.strip():
            if key in keys:
                first = keys[key]
                out.add(index, block_type, f'Duplicate _key "{key}" (first used by block {first})')
            else:
                keys[key] = index

    return ValidationReport(warnings=tuple(out.warnings))


__all__ = ["validate_blocks"]
