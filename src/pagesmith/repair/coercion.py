"""
Per-tag field coercion.

Language models get the *shape* of a field wrong far more often than its
content: a heading comes back as a rich-text array, a list of selling points
as one long string, a price as ``"1.25"``. :func:`coerce_field` maps such
values onto the declared tag when it can and reports it when it cannot.

Outcomes
--------
- ``keep``: the value already satisfies the tag; nothing is logged.
- ``fixed``: a replacement value is supplied.
- ``drop``: the value is unfixable and the field should be removed.

Coercion is idempotent: feeding a ``fixed`` value back in yields ``keep``.
It never raises.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from pagesmith.core.contracts.manifest import FieldTypeTag

from .field_types import (
    flatten_rich_text,
    is_reference,
    is_rich_text_block,
    is_valid,
    make_paragraph,
)
from .keys import KeyFactory

CoercionOutcome = Literal["keep", "fixed", "drop"]

_INT_RE = re.compile(r"^[+-]?\d+$")
_THOUSANDS_RE = re.compile(r"^[+-]?\d{1,3}(,\d{3})+$")
_PREVIEW_LIMIT = 60


def preview(value: Any) -> str:
    """Short JSON-ish rendering of ``value`` for log lines."""
    try:
        text = json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = repr(value)
    if len(text) > _PREVIEW_LIMIT:
        text = text[: _PREVIEW_LIMIT - 3] + "..."
    return text


@dataclass(frozen=True, slots=True)
class Coercion:
    """Outcome of coercing one field value."""

    outcome: CoercionOutcome
    value: Any = None
    original: Any = None

    @classmethod
    def keep(cls, value: Any) -> Coercion:
        return cls("keep", value, value)

    @classmethod
    def fixed(cls, original: Any, value: Any) -> Coercion:
        return cls("fixed", value, original)

    @classmethod
    def drop(cls, original: Any) -> Coercion:
        return cls("drop", None, original)

    def describe(self, field: str) -> str:
        """Human-readable summary, e.g. ``field "title" fixed: was [...] now "..."``."""
        if self.outcome == "fixed":
            return f'field "{field}" fixed: was {preview(self.original)} now {preview(self.value)}'
        if self.outcome == "drop":
            return f'field "{field}" dropped: unfixable {preview(self.original)}'
        return f'field "{field}" kept'


# ===========================================================================
# Per-tag rules
# ===========================================================================


def _to_text(value: Any) -> str:
    if isinstance(value, Mapping | bool):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _coerce_string(value: Any) -> Coercion:
    if value is None:
        return Coercion.drop(value)
    if isinstance(value, list) or is_rich_text_block(value):
        text = flatten_rich_text(value)
        return Coercion.fixed(value, text) if text else Coercion.drop(value)
    text = _to_text(value)
    return Coercion.fixed(value, text) if text.strip() else Coercion.drop(value)


def _coerce_number(value: Any) -> Coercion:
    if not isinstance(value, str):
        return Coercion.drop(value)
    text = value.strip()
    if _THOUSANDS_RE.match(text):
        # Grouped thousands, e.g. "1,000".
        text = text.replace(",", "")
    elif text.count(",") == 1 and "." not in text:
        # Decimal comma, e.g. "1,25".
        text = text.replace(",", ".")
    if _INT_RE.match(text):
        return Coercion.fixed(value, int(text))
    try:
        number = float(text)
    except ValueError:
        return Coercion.drop(value)
    return Coercion.fixed(value, number) if math.isfinite(number) else Coercion.drop(value)


def _string_item(item: Any) -> str | None:
    if isinstance(item, str):
        return item.strip() or None
    if is_rich_text_block(item):
        return flatten_rich_text(item) or None
    if isinstance(item, int | float) and not isinstance(item, bool):
        return str(item)
    return None


def _coerce_string_array(value: Any) -> Coercion:
    items = value if isinstance(value, list) else [value]
    out = [s for s in (_string_item(i) for i in items) if s is not None]
    return Coercion.fixed(value, out) if out else Coercion.drop(value)


def _coerce_rich_text_array(value: Any, keys: KeyFactory) -> Coercion:
    if isinstance(value, str):
        if not value.strip():
            return Coercion.drop(value)
        return Coercion.fixed(value, [make_paragraph(value, keys)])
    if is_rich_text_block(value):
        return Coercion.fixed(value, [dict(value)])
    if not isinstance(value, list):
        return Coercion.drop(value)
    out: list[Any] = []
    for item in value:
        if is_rich_text_block(item):
            out.append(item)
        elif isinstance(item, str) and item.strip():
            out.append(make_paragraph(item, keys))
    return Coercion.fixed(value, out) if out else Coercion.drop(value)


def _coerce_reference_array(value: Any) -> Coercion:
    if not isinstance(value, list):
        return Coercion.drop(value)
    out = [item for item in value if is_reference(item)]
    return Coercion.fixed(value, out) if out else Coercion.drop(value)


def _coerce_enum(value: Any, allowed: tuple[str, ...]) -> Coercion:
    if not isinstance(value, str):
        return Coercion.drop(value)
    wanted = value.strip().casefold()
    for candidate in allowed:
        if candidate.strip().casefold() == wanted:
            return Coercion.fixed(value, candidate)
    return Coercion.drop(value)


# ===========================================================================
# Public API
# ===========================================================================


def coerce_field(
    tag: FieldTypeTag,
    value: Any,
    *,
    enums: Iterable[str] = (),
    keys: KeyFactory | None = None,
) -> Coercion:
    """Coerce ``value`` towards ``tag``.

    Parameters
    ----------
    tag:
        Declared field type.
    value:
        Current field value, as produced by the model.
    enums:
        Allowed values for :attr:`FieldTypeTag.ENUM` fields.
    keys:
        Key factory for synthesized rich-text paragraphs.

    Returns
    -------
    Coercion
        ``keep`` if already valid, ``fixed`` with a replacement value, or
        ``drop`` if the value cannot be salvaged.
    """
    allowed = tuple(enums)
    if is_valid(tag, value, allowed):
        return Coercion.keep(value)

    if tag is FieldTypeTag.STRING:
        return _coerce_string(value)
    if tag is FieldTypeTag.NUMBER:
        return _coerce_number(value)
    if tag is FieldTypeTag.STRING_ARRAY:
        return _coerce_string_array(value)
    if tag is FieldTypeTag.RICH_TEXT_ARRAY:
        return _coerce_rich_text_array(value, keys if keys is not None else KeyFactory())
    if tag is FieldTypeTag.REFERENCE_ARRAY:
        return _coerce_reference_array(value)
    if tag is FieldTypeTag.ENUM:
        return _coerce_enum(value, allowed)
    # Image and icon tags have no salvageable shapes.
    return Coercion.drop(value)


__all__ = ["Coercion", "CoercionOutcome", "coerce_field", "preview"]
