"""Predicates per field type tag and the rich-text helpers."""

from __future__ import annotations

import math

from pagesmith.core.contracts.block import ReferenceObject
from pagesmith.core.contracts.manifest import FieldTypeTag
from pagesmith.repair.field_types import (
    flatten_rich_text,
    is_empty,
    is_icon_ref,
    is_image_ref,
    is_number,
    is_optional_image_ref,
    is_reference,
    is_rich_text_array,
    is_valid,
    make_paragraph,
)
from pagesmith.repair.keys import KeyFactory


def test_numbers_exclude_booleans_and_non_finite() -> None:
    assert is_number(3) and is_number(1.25)
    assert not is_number(True)
    assert not is_number(math.inf)
    assert not is_number("3")


def test_reference_shape_is_strict() -> None:
    """Only the four system keys are allowed and `_ref` must be a non-empty string."""
    assert is_reference({"_type": "reference", "_ref": "abc"})
    assert is_reference({"_type": "reference", "_ref": "abc", "_key": "k", "_weak": True})
    assert not is_reference({"_type": "reference", "_ref": ""})
    assert not is_reference({"_type": "reference", "_ref": "abc", "title": "Andel Energi"})
    assert not is_reference({"_ref": "abc"})


def test_reference_rejects_aliases_nulls_and_loose_types() -> None:
    assert not is_reference({"_type": "reference", "ref": "abc"})
    assert not is_reference({"_type": "reference", "_ref": "abc", "_key": None})
    assert not is_reference({"_type": "reference", "_ref": "abc", "_weak": "yes"})
    assert not is_reference({"_type": "reference", "_ref": 42})


def test_reference_object_serializes_only_set_keys() -> None:
    ref = ReferenceObject.model_validate({"_type": "reference", "_ref": "abc", "_key": "k1"})

    assert ref.to_sanity() == {"_type": "reference", "_ref": "abc", "_key": "k1"}
    assert is_reference(ref.to_sanity())


def test_image_and_icon_predicates() -> None:
    image = {"_type": "image", "asset": {"_ref": "image-abc-200x200-png"}}
    assert is_image_ref(image)
    assert not is_image_ref({"asset": {"_ref": " "}})
    assert is_optional_image_ref(None) and is_optional_image_ref(image)
    assert is_icon_ref({"_type": "icon.manager", "icon": "mdi:flash"})
    assert not is_icon_ref("mdi:flash")


def test_enum_requires_the_allowed_values() -> None:
    assert is_valid(FieldTypeTag.ENUM, "DK1", ("DK1", "DK2"))
    assert not is_valid(FieldTypeTag.ENUM, "dk1", ("DK1", "DK2"))
    assert not is_valid(FieldTypeTag.ENUM, "DK1")


def test_is_empty_treats_blank_strings_and_empty_lists_as_missing() -> None:
    assert is_empty(None) and is_empty("  ") and is_empty([])
    assert not is_empty(0)
    assert not is_empty(["x"])


def test_flatten_joins_runs_and_paragraphs() -> None:
    value = [
        {"_type": "block", "children": [{"text": "Hello "}, {"text": "world"}]},
        {"_type": "block", "children": [{"text": "  again\n"}]},
    ]
    assert flatten_rich_text(value) == "Hello world again"
    assert flatten_rich_text({"_type": "block", "children": [{"text": "solo"}]}) == "solo"


def test_make_paragraph_builds_a_valid_portable_text_block() -> None:
    keys = KeyFactory(clock=lambda: 100.0)
    paragraph = make_paragraph("Spotprisen ændrer sig hver time.", keys)

    assert is_rich_text_array([paragraph])
    assert paragraph["style"] == "normal"
    assert paragraph["markDefs"] == []
    (span,) = paragraph["children"]
    assert span["text"] == "Spotprisen ændrer sig hver time."
    assert span["_key"] != paragraph["_key"]
    assert paragraph["_key"].startswith("paragraph-100-")
