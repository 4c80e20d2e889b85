"""Schema manifest contracts: block types, field type tags, and allow-lists.

The manifest is the declarative schema every generated page is checked
against. It is loaded once (see :mod:`pagesmith.manifest.loader`) and is
immutable afterwards: all models here are frozen, and a new manifest is
installed by replacing the whole object, never by editing one in place.

On-disk format
--------------
The JSON document follows the original CMS export:

.. code-block:: json

    {
      "contentBlockTypes": [
        {
          "type": "hero",
          "description": "Top-of-page banner",
          "requiredFields": ["headline", "subheadline"],
          "fieldTypes": {"headline": "string", "image": "image?"},
          "fieldEnums": {}
        }
      ],
      "referenceAllowLists": [...],
      "recordLists": [...]
    }

Field types may use the short tags of :class:`FieldTypeTag` or the long
legacy names (``"array of strings"``, ``"icon.manager"``, ...). Type names
that match neither are kept but not validated.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

#: Block types flagged mandatory when a manifest does not flag any itself.
CONVENTIONAL_MANDATORY: tuple[str, str] = ("hero", "pageSection")


class FieldTypeTag(str, Enum):
    """Closed set of field type tags understood by coercion and validation."""

    STRING = "string"
    NUMBER = "number"
    STRING_ARRAY = "stringArray"
    RICH_TEXT_ARRAY = "richTextArray"
    REFERENCE_ARRAY = "referenceArray"
    IMAGE_REF = "imageRef"
    OPTIONAL_IMAGE_REF = "optionalImageRef"
    ICON_REF = "iconRef"
    ENUM = "enum"


_LEGACY_TAG_NAMES: dict[str, FieldTypeTag] = {
    "array of strings": FieldTypeTag.STRING_ARRAY,
    "array of references": FieldTypeTag.REFERENCE_ARRAY,
    "array of portable text blocks": FieldTypeTag.RICH_TEXT_ARRAY,
    "icon.manager": FieldTypeTag.ICON_REF,
    "image": FieldTypeTag.IMAGE_REF,
    "image?": FieldTypeTag.OPTIONAL_IMAGE_REF,
    "sanity image object with valid asset reference": FieldTypeTag.IMAGE_REF,
}

#: Tags for which a fallback value can always be synthesized.
SYNTHESIZABLE_TAGS: frozenset[FieldTypeTag] = frozenset(
    {
        FieldTypeTag.STRING,
        FieldTypeTag.NUMBER,
        FieldTypeTag.STRING_ARRAY,
        FieldTypeTag.RICH_TEXT_ARRAY,
        FieldTypeTag.ENUM,
    }
)


def parse_field_type(raw: str) -> FieldTypeTag | None:
    """Map a manifest type name onto a :class:`FieldTypeTag`.

    Returns ``None`` for names that are not recognised; such fields are
    preserved in blocks but never validated.

    Examples
    --------
    >>> parse_field_type("stringArray")
    <FieldTypeTag.STRING_ARRAY: 'stringArray'>
    >>> parse_field_type("image?")
    <FieldTypeTag.OPTIONAL_IMAGE_REF: 'optionalImageRef'>
    >>> parse_field_type("array of faqItem objects") is None
    True
    """
    name = raw.strip()
    for tag in FieldTypeTag:
        if tag.value == name:
            return tag
    return _LEGACY_TAG_NAMES.get(name.lower())


class BlockTypeSpec(BaseModel):
    """Definition of one content block type."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str = Field(..., min_length=1, description="Unique block type name.")
    description: str = Field(default="", description="Human-readable purpose.")
    required_fields: frozenset[str] = Field(default_factory=frozenset, alias="requiredFields")
    field_types: dict[str, str] = Field(default_factory=dict, alias="fieldTypes")
    field_enums: dict[str, tuple[str, ...]] = Field(default_factory=dict, alias="fieldEnums")
    omit_fields: frozenset[str] = Field(
        default_factory=frozenset,
        alias="omitFields",
        description="Fields the generator must never fill in; repair strips them.",
    )
    mandatory: bool = False

    def tag_for(self, field: str) -> FieldTypeTag | None:
        """Return the declared tag for ``field``.

        A field without a recognised type but with an enum constraint is
        treated as :attr:`FieldTypeTag.ENUM`.
        """
        raw = self.field_types.get(field)
        tag = parse_field_type(raw) if raw is not None else None
        if tag is None and field in self.field_enums:
            return FieldTypeTag.ENUM
        return tag

    def typed_fields(self) -> dict[str, FieldTypeTag]:
        """Return every field with a recognised tag, in declaration order."""
        out: dict[str, FieldTypeTag] = {}
        for name in [*self.field_types, *self.field_enums]:
            tag = self.tag_for(name)
            if tag is not None and name not in out:
                out[name] = tag
        return out

    def is_synthesizable(self) -> bool:
        """Return True if every required field can be filled with a safe value."""
        for name in self.required_fields:
            tag = self.tag_for(name)
            if tag is None and name not in self.field_types:
                # Untyped required fields are filled with plain text.
                continue
            if tag not in SYNTHESIZABLE_TAGS:
                return False
            if tag is FieldTypeTag.ENUM and not self.field_enums.get(name):
                return False
        return True


class ReferenceAllowList(BaseModel):
    """A reference field restricted to a fixed vocabulary of identifiers."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    block_type: str = Field(..., alias="blockType")
    field: str
    preferred: str = Field(..., min_length=1, description="Identifier pinned to index 0.")
    allowed: tuple[str, ...] = Field(..., min_length=1)
    max_entries: int = Field(default=4, ge=1, alias="maxEntries")

    @model_validator(mode="after")
    def _preferred_is_allowed(self) -> ReferenceAllowList:
        if self.preferred not in self.allowed:
            raise ValueError(
                f"preferred identifier {self.preferred!r} is not in the allow-list "
                f"for {self.block_type}.{self.field}"
            )
        if len(set(self.allowed)) != len(self.allowed):
            raise ValueError(f"duplicate identifiers in allow-list {self.block_type}.{self.field}")
        return self


class RecordListRule(BaseModel):
    """A field that must hold a non-empty list of fully inline records."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    block_type: str = Field(..., alias="blockType")
    field: str
    record_type: str = Field(..., alias="recordType")
    text_field: str = Field(default="question", alias="textField")
    rich_text_field: str = Field(default="answer", alias="richTextField")
    placeholder_text: str = Field(
        default="Sorry, we could not prepare this question yet.", alias="placeholderText"
    )
    placeholder_rich_text: str = Field(
        default="We apologise: the answer to this question is not available right now.",
        alias="placeholderRichText",
    )


class SchemaManifest(BaseModel):
    """Ordered, immutable set of block type definitions."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str = "1"
    block_types: tuple[BlockTypeSpec, ...] = Field(..., min_length=1, alias="contentBlockTypes")
    allow_lists: tuple[ReferenceAllowList, ...] = Field(
        default_factory=tuple, alias="referenceAllowLists"
    )
    record_lists: tuple[RecordListRule, ...] = Field(default_factory=tuple, alias="recordLists")

    @field_validator("block_types", mode="before")
    @classmethod
    def _flag_conventional_mandatory(cls, value: Any) -> Any:
        """Flag ``hero``/``pageSection`` as mandatory when nothing is flagged."""
        if not isinstance(value, list | tuple):
            return value
        raw = [dict(v) if isinstance(v, dict) else v for v in value]
        if any(isinstance(v, dict) and v.get("mandatory") for v in raw):
            return raw
        if any(isinstance(v, BlockTypeSpec) and v.mandatory for v in raw):
            return raw
        for item in raw:
            if isinstance(item, dict) and item.get("type") in CONVENTIONAL_MANDATORY:
                item["mandatory"] = True
        return raw

    @model_validator(mode="after")
    def _check_invariants(self) -> SchemaManifest:
        names = [spec.type for spec in self.block_types]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate block types: {', '.join(duplicates)}")

        mandatory = [spec.type for spec in self.block_types if spec.mandatory]
        if len(mandatory) != 2:
            raise ValueError(
                f"exactly two block types must be mandatory, found {len(mandatory)}: "
                f"{', '.join(mandatory) or 'none'}"
            )

        known = set(names)
        for rule in (*self.allow_lists, *self.record_lists):
            if rule.block_type not in known:
                raise ValueError(f"rule targets unknown block type {rule.block_type!r}")

        if not any(spec.is_synthesizable() for spec in self.block_types if spec.mandatory):
            raise ValueError("no mandatory block type can be synthesized as a fallback block")
        return self

    # ----- Lookup helpers ------------------------------------------------------
    def get_spec(self, block_type: str) -> BlockTypeSpec | None:
        """Return the spec for ``block_type`` or ``None`` if unknown."""
        for spec in self.block_types:
            if spec.type == block_type:
                return spec
        return None

    def __contains__(self, block_type: object) -> bool:
        return isinstance(block_type, str) and self.get_spec(block_type) is not None

    @property
    def type_names(self) -> tuple[str, ...]:
        """All block type names in manifest order."""
        return tuple(spec.type for spec in self.block_types)

    @property
    def mandatory_types(self) -> tuple[str, ...]:
        """The two mandatory block types in manifest order."""
        return tuple(spec.type for spec in self.block_types if spec.mandatory)

    @property
    def optional_types(self) -> tuple[str, ...]:
        """Every non-mandatory block type in manifest order."""
        return tuple(spec.type for spec in self.block_types if not spec.mandatory)

    def allow_list_for(self, block_type: str, field: str) -> ReferenceAllowList | None:
        """Return the allow-list constraining ``block_type.field``, if any."""
        for rule in self.allow_lists:
            if rule.block_type == block_type and rule.field == field:
                return rule
        return None

    def record_lists_for(self, block_type: str) -> tuple[RecordListRule, ...]:
        """Return the inline-record rules that apply to ``block_type``."""
        return tuple(rule for rule in self.record_lists if rule.block_type == block_type)


__all__ = [
    "CONVENTIONAL_MANDATORY",
    "FieldTypeTag",
    "BlockTypeSpec",
    "ReferenceAllowList",
    "RecordListRule",
    "SchemaManifest",
    "parse_field_type",
]
