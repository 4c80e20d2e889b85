"""
Repair event records.

Every automatic correction made between extraction and validation is
recorded as an immutable :class:`RepairEvent`. Two kinds are distinguished
so that metrics can tell cosmetic fixes apart from content that was
materially wrong:

- ``"fixed"``: a shape-level correction (string flattened, key generated).
- ``"violation"``: a structural rule was broken and content was discarded
  or replaced (inline record where a reference was required, identifier not
  on the allow-list, unknown block type).

Design Notes
------------
- **Immutability**: events are frozen once created.
- **Logging**: :class:`RepairLog` writes one log line per event at the
  moment it is recorded, so the log and the returned events never disagree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

RepairKind = Literal["fixed", "violation"]


@dataclass(frozen=True, slots=True)
class RepairEvent:
    """
    Immutable record of one repair.

    Attributes
    ----------
    kind : RepairKind
        ``"fixed"`` for cosmetic repairs, ``"violation"`` for material ones.
    block_index : int
        Position of the block in the extracted array (``-1`` for
        document-level repairs such as reordering).
    block_type : str
        Block type at the time of the repair (may be empty if missing).
    message : str
        Human-readable description, e.g. ``'field "title" fixed: was [...] now "..."'``.
    field : str | None
        Field the repair applied to, if any.
    """

    kind: RepairKind
    block_index: int
    block_type: str
    message: str
    field: str | None = None


@dataclass(slots=True)
class RepairLog:
    """Ordered collection of repair events for one pipeline run."""

    logger: logging.Logger
    events: list[RepairEvent] = field(default_factory=list)

    def fixed(
        self, block_index: int, block_type: str, message: str, *, field: str | None = None
    ) -> None:
        """Record a cosmetic fix."""
        self.events.append(RepairEvent("fixed", block_index, block_type, message, field))
        self.logger.info("fixed | block %d (%s): %s", block_index, block_type, message)

    def violation(
        self, block_index: int, block_type: str, message: str, *, field: str | None = None
    ) -> None:
        """Record a structural violation that was corrected."""
        self.events.append(RepairEvent("violation", block_index, block_type, message, field))
        self.logger.warning(
            "violation detected | block %d (%s): %s", block_index, block_type, message
        )

    @property
    def fix_count(self) -> int:
        return sum(1 for e in self.events if e.kind == "fixed")

    @property
    def violation_count(self) -> int:
        return sum(1 for e in self.events if e.kind == "violation")

    def snapshot(self) -> tuple[RepairEvent, ...]:
        """Return the events recorded so far as an immutable tuple."""
        return tuple(self.events)


__all__ = ["RepairKind", "RepairEvent", "RepairLog"]
