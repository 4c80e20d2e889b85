"""
Content block contracts.

A :class:`ContentBlock` is one structured unit of a generated page (hero,
page section, FAQ group, ...). Its payload is an open mapping because the
manifest, not this module, decides which fields a given type carries; the
repair and validation stages interpret ``fields`` against the manifest.

The serialized form follows the CMS convention of underscore-prefixed
system keys:

.. code-block:: json

    {"_type": "hero", "_key": "hero-1735551600-ab12", "headline": "..."}
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

#: Keys allowed on a reference object.
REFERENCE_KEYS: tuple[str, ...] = ("_type", "_ref", "_key", "_weak")


class ContentBlock(BaseModel):
    """A validated content block with a process-unique key."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1, description="Block type from the manifest.")
    key: str = Field(..., min_length=1, description="Process-unique block key.")
    fields: dict[str, Any] = Field(default_factory=dict, description="Open field payload.")

    @classmethod
    def from_sanity(cls, raw: Mapping[str, Any]) -> ContentBlock:
        """Build a block from its serialized ``_type``/``_key`` mapping."""
        payload = {k: copy.deepcopy(v) for k, v in raw.items() if k not in ("_type", "_key")}
        return cls(type=str(raw.get("_type", "")), key=str(raw.get("_key", "")), fields=payload)

    def to_sanity(self) -> dict[str, Any]:
        """Return the serialized mapping (a deep copy, safe to mutate)."""
        out: dict[str, Any] = {"_type": self.type, "_key": self.key}
        out.update(copy.deepcopy(self.fields))
        return out


class ReferenceObject(BaseModel):
    """Pointer to another CMS document by identifier."""

    model_config = ConfigDict(frozen=True, extra="forbid", strict=True)

    type: Literal["reference"] = Field(..., alias="_type")
    ref: str = Field(..., min_length=1, alias="_ref")
    key: str | None = Field(default=None, alias="_key")
    weak: bool | None = Field(default=None, alias="_weak")

    @model_validator(mode="before")
    @classmethod
    def _reject_null_keys(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and any(v is None for v in data.values()):
            raise ValueError("reference keys must not be null")
        return data

    def to_sanity(self) -> dict[str, Any]:
        """Return the serialized reference without unset optional keys."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ValidationWarning(BaseModel):
    """One compliance problem found by the validator."""

    model_config = ConfigDict(frozen=True)

    block_index: int = Field(..., ge=0)
    block_type: str
    field: str | None = None
    message: str

    def __str__(self) -> str:
        return self.message


class ValidationReport(BaseModel):
    """Outcome of a compliance pass; ``compliant`` iff there are no warnings."""

    model_config = ConfigDict(frozen=True)

    warnings: tuple[ValidationWarning, ...] = ()

    @property
    def compliant(self) -> bool:
        return not self.warnings

    def messages(self) -> list[str]:
        """Return the warning messages in order."""
        return [w.message for w in self.warnings]


__all__ = [
    "REFERENCE_KEYS",
    "ContentBlock",
    "ReferenceObject",
    "ValidationWarning",
    "ValidationReport",
]
