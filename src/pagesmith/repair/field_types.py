"""
Validity predicates for field type tags, plus rich-text helpers.

Each :class:`~pagesmith.core.contracts.manifest.FieldTypeTag` has exactly
one predicate here. The validator uses them to decide compliance and the
coercion engine uses them to decide whether a value can be kept as is.

Rich text follows the Portable Text shape used by the CMS::

    [{"_type": "block", "_key": "...", "style": "normal", "markDefs": [],
      "children": [{"_type": "span", "_key": "...", "text": "...", "marks": []}]}]
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from pagesmith.core.contracts.block import ReferenceObject
from pagesmith.core.contracts.manifest import FieldTypeTag

from .keys import KeyFactory


def is_string(value: Any) -> bool:
    return isinstance(value, str)


def is_number(value: Any) -> bool:
    """Return True for finite ints and floats. Booleans are not numbers."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return False
    return math.isfinite(value)


def is_string_array(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def is_rich_text_block(value: Any) -> bool:
    """Return True if ``value`` is a single Portable Text paragraph."""
    if not isinstance(value, Mapping) or value.get("_type") != "block":
        return False
    children = value.get("children")
    return isinstance(children, list) and all(isinstance(c, Mapping) for c in children)


def is_rich_text_array(value: Any) -> bool:
    return isinstance(value, list) and all(is_rich_text_block(v) for v in value)


def is_reference(value: Any) -> bool:
    """Return True if ``value`` validates as a :class:`ReferenceObject`."""
    if not isinstance(value, Mapping) or not all(isinstance(k, str) for k in value):
        return False
    try:
        ReferenceObject.model_validate(dict(value))
    except ValidationError:
        return False
    return True


def is_reference_array(value: Any) -> bool:
    return isinstance(value, list) and all(is_reference(v) for v in value)


def is_image_ref(value: Any) -> bool:
    """Return True for an image object whose ``asset`` carries a non-empty ``_ref``."""
    if not isinstance(value, Mapping):
        return False
    asset = value.get("asset")
    if not isinstance(asset, Mapping):
        return False
    ref = asset.get("_ref")
    return isinstance(ref, str) and bool(ref.strip())


def is_optional_image_ref(value: Any) -> bool:
    return value is None or is_image_ref(value)


def is_icon_ref(value: Any) -> bool:
    if not isinstance(value, Mapping) or value.get("_type") != "icon.manager":
        return False
    icon = value.get("icon")
    return isinstance(icon, str) and bool(icon.strip())


def is_enum_member(value: Any, allowed: Iterable[str]) -> bool:
    return isinstance(value, str) and value in tuple(allowed)


#: Predicate per tag. ``ENUM`` needs the allowed values; see :func:`is_valid`.
PREDICATES: dict[FieldTypeTag, Callable[[Any], bool]] = {
    FieldTypeTag.STRING: is_string,
    FieldTypeTag.NUMBER: is_number,
    FieldTypeTag.STRING_ARRAY: is_string_array,
    FieldTypeTag.RICH_TEXT_ARRAY: is_rich_text_array,
    FieldTypeTag.REFERENCE_ARRAY: is_reference_array,
    FieldTypeTag.IMAGE_REF: is_image_ref,
    FieldTypeTag.OPTIONAL_IMAGE_REF: is_optional_image_ref,
    FieldTypeTag.ICON_REF: is_icon_ref,
}


def is_valid(tag: FieldTypeTag, value: Any, enums: Iterable[str] = ()) -> bool:
    """Return True if ``value`` satisfies the predicate of ``tag``."""
    if tag is FieldTypeTag.ENUM:
        return is_enum_member(value, enums)
    return PREDICATES[tag](value)


def is_empty(value: Any) -> bool:
    """Return True for values that do not count as "present" for required fields.

    ``None``, empty or whitespace-only strings and empty lists are empty.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list):
        return not value
    return False


# ===========================================================================
# Rich text helpers
# ===========================================================================


def _collapse(text: str) -> str:
    return " ".join(text.split())


def flatten_rich_text(value: Any) -> str:
    """Flatten rich text into a single plain string.

    The inline runs of each paragraph are joined without a separator,
    paragraphs are joined with a single space, and whitespace is collapsed.
    Non-paragraph items in a list are converted with ``str``.

    Examples
    --------
    >>> flatten_rich_text([
    ...     {"_type": "block", "children": [{"text": "Hello "}, {"text": "world"}]},
    ...     {"_type": "block", "children": [{"text": "again"}]},
    ... ])
    'Hello world again'
    """
    if isinstance(value, Mapping):
        value = [value]
    if not isinstance(value, list):
        return _collapse(str(value))

    parts: list[str] = []
    for item in value:
        if is_rich_text_block(item):
            parts.append(
                "".join(
                    str(child.get("text", ""))
                    for child in item["children"]
                    if child.get("text") is not None
                )
            )
        elif item is not None:
            parts.append(str(item))
    return _collapse(" ".join(parts))


def make_paragraph(text: str, keys: KeyFactory | None = None) -> dict[str, Any]:
    """Wrap ``text`` into one Portable Text paragraph with one span."""
    factory = keys if keys is not None else KeyFactory()
    return {
        "_type": "block",
        "_key": factory.new_key("paragraph"),
        "style": "normal",
        "markDefs": [],
        "children": [
            {"_type": "span", "_key": factory.new_key("span"), "text": text, "marks": []}
        ],
    }


__all__ = [
    "PREDICATES",
    "flatten_rich_text",
    "is_empty",
    "is_enum_member",
    "is_icon_ref",
    "is_image_ref",
    "is_number",
    "is_optional_image_ref",
    "is_reference",
    "is_reference_array",
    "is_rich_text_array",
    "is_rich_text_block",
    "is_string",
    "is_string_array",
    "is_valid",
    "make_paragraph",
]
