"""
Per-block repair engine.

Takes the raw block candidates produced by the extractor and returns a new
list of blocks that the validator has a fair chance of accepting. For each
block, in order:

1. discard non-objects, blocks without ``_type`` and unknown block types;
2. sanitize every reference object inside the block's fields;
3. strip manifest ``omit_fields`` and string-valued ``icon`` keys;
4. coerce every typed field towards its tag (unfixable values are dropped),
   except inline-record and allow-listed fields;
5. run the inline-record and allow-list repairers that target the type;
6. ensure a non-empty ``_key`` unique within the document.

Finally mandatory blocks are moved to the front in manifest order.

The input is never mutated.
"""

from __future__ import annotations

import copy
import random
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pagesmith.core.contracts.manifest import BlockTypeSpec, SchemaManifest
from pagesmith.core.contracts.repair import RepairEvent, RepairLog
from pagesmith.core.settings import get_logger
from pagesmith.extraction.extractor import canonical_block

from .blocks import (
    order_mandatory_first,
    repair_allow_list,
    repair_record_list,
    strip_omitted_fields,
    strip_string_icons,
)
from .coercion import coerce_field, preview
from .keys import KeyFactory
from .references import sanitize_references

_log = get_logger("pagesmith.repair")


@dataclass(frozen=True, slots=True)
class RepairOutcome:
    """Repaired blocks (serialized ``_type``/``_key`` mappings) plus the repair trail."""

    blocks: tuple[dict[str, Any], ...]
    events: tuple[RepairEvent, ...]

    @property
    def fix_count(self) -> int:
        return sum(1 for e in self.events if e.kind == "fixed")

    @property
    def violation_count(self) -> int:
        return sum(1 for e in self.events if e.kind == "violation")


def _sanitize_fields(
    block: dict[str, Any], index: int, block_type: str, log: RepairLog
) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, value in block.items():
        if name in ("_type", "_key"):
            out[name] = value
            continue

        def report(path: str, message: str, _field: str = name) -> None:
            log.fixed(index, block_type, f"sanitized reference at {path}: {message}", field=_field)

        out[name], _ = sanitize_references(value, name, report)
    return out


def _coerce_fields(
    block: dict[str, Any],
    spec: BlockTypeSpec,
    manifest: SchemaManifest,
    index: int,
    log: RepairLog,
    keys: KeyFactory,
) -> dict[str, Any]:
    # Structural repairers judge these fields on the uncoerced value.
    skipped = {rule.field for rule in manifest.record_lists_for(spec.type)}
    skipped.update(rule.field for rule in manifest.allow_lists if rule.block_type == spec.type)
    for name, tag in spec.typed_fields().items():
        if name not in block or name in skipped:
            continue
        result = coerce_field(tag, block[name], enums=spec.field_enums.get(name, ()), keys=keys)
        if result.outcome == "fixed":
            block[name] = result.value
            log.fixed(index, spec.type, result.describe(name), field=name)
        elif result.outcome == "drop":
            del block[name]
            log.violation(index, spec.type, result.describe(name), field=name)
    return block


def _repair_one(
    raw: Any,
    index: int,
    manifest: SchemaManifest,
    log: RepairLog,
    rng: random.Random,
    keys: KeyFactory,
) -> dict[str, Any] | None:
    if not isinstance(raw, Mapping):
        log.violation(index, "", f"block is not an object ({preview(raw)}); dropped")
        return None

    block = canonical_block(copy.deepcopy(dict(raw)))
    block_type = block.get("_type")
    if not isinstance(block_type, str) or not block_type.strip():
        log.violation(index, "", "block has no _type; dropped")
        return None
    spec = manifest.get_spec(block_type)
    if spec is None:
        log.violation(index, block_type, f'unknown block type "{block_type}"; dropped')
        return None

    block = _sanitize_fields(block, index, block_type, log)

    block, omitted = strip_omitted_fields(block, manifest, top_level_type=block_type)
    for path in omitted:
        log.fixed(index, block_type, f'removed omitted field "{path}"', field=path.split(".")[0])

    block, icons = strip_string_icons(block)
    for path in icons:
        log.fixed(index, block_type, f'removed string icon at "{path}"', field=path.split(".")[0])

    block = _coerce_fields(block, spec, manifest, index, log, keys)

    for record_rule in manifest.record_lists_for(block_type):
        block = repair_record_list(block, record_rule, block_index=index, log=log, keys=keys)
    for allow_rule in manifest.allow_lists:
        if allow_rule.block_type == block_type:
            block = repair_allow_list(
                block, allow_rule, block_index=index, log=log, rng=rng, keys=keys
            )
    return block


def repair_blocks(
    raw_blocks: Sequence[Any],
    manifest: SchemaManifest,
    *,
    rng: random.Random | None = None,
    keys: KeyFactory | None = None,
    log: RepairLog | None = None,
) -> RepairOutcome:
    """Repair every raw block against ``manifest``.

    Parameters
    ----------
    raw_blocks:
        Block candidates from the extractor; may contain anything.
    manifest:
        The manifest snapshot to repair against.
    rng:
        Random source for allow-list selections (and for keys when ``keys``
        is not supplied).
    keys:
        Key factory; defaults to one built on ``rng``.
    log:
        Repair log to append to; a fresh one is created if omitted.

    Returns
    -------
    RepairOutcome
        New block mappings, ``_type`` and ``_key`` first, plus every repair
        event recorded during this call.
    """
    rng = rng if rng is not None else random.Random()
    keys = keys if keys is not None else KeyFactory(rng)
    log = log if log is not None else RepairLog(_log)
    start = len(log.events)

    repaired: list[dict[str, Any]] = []
    seen_keys: set[str] = set()
    for index, raw in enumerate(raw_blocks):
        block = _repair_one(raw, index, manifest, log, rng, keys)
        if block is None:
            continue
        block_type = block["_type"]
        key = block.get("_key")
        if not isinstance(key, str) or not key.strip():
            block["_key"] = keys.new_key(block_type)
            log.fixed(index, block_type, f"added _key {block['_key']}")
        elif key in seen_keys:
            block["_key"] = keys.new_key(block_type)
            log.fixed(index, block_type, f"replaced duplicate _key {key} with {block['_key']}")
        seen_keys.add(block["_key"])
        keys.reserve(block["_key"])
        repaired.append({"_type": block_type, "_key": block["_key"], **block})

    ordered = order_mandatory_first(repaired, manifest)
    if [id(b) for b in ordered] != [id(b) for b in repaired]:
        summary = ", ".join(str(b["_type"]) for b in ordered)
        log.fixed(-1, "", f"moved mandatory blocks to the front: {summary}")

    _log.info(
        "Repaired %d of %d block(s): %d fix(es), %d violation(s)",
        len(ordered),
        len(raw_blocks),
        sum(1 for e in log.events[start:] if e.kind == "fixed"),
        sum(1 for e in log.events[start:] if e.kind == "violation"),
    )
    return RepairOutcome(blocks=tuple(ordered), events=tuple(log.events[start:]))


__all__ = ["RepairOutcome", "repair_blocks"]
