"""
Text-to-object extractor for model replies.

Language models are asked for "JSON only", but what comes back is
routinely wrapped in prose, fenced code blocks, or trailing chatter. This
module recovers one JSON value from such a reply with an ordered cascade;
each stage runs only if the previous one failed:

1. **direct**   - parse the whole reply.
2. **fenced**   - parse the body of a fenced code block (any language tag).
3. **boundary** - parse the first ``{`` up to its balanced ``}``.
4. **cleanup**  - drop fence markers and anything before the first ``{`` or
   after the last ``}``, then parse.

A stage succeeds only if it yields a JSON object or array. When every stage
fails the extractor returns an empty block list instead of raising; the
orchestrator's failure policy decides what the caller sees.

The recovered value is normalised into a list of raw block candidates:
``{"contentBlocks": [...]}`` → that list, a bare array → itself, anything
else → no blocks.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from pagesmith.core.settings import get_logger

ExtractionStage = Literal["direct", "fenced", "boundary", "cleanup"]

#: Name of the top-level array holding the blocks.
BLOCKS_KEY: str = "contentBlocks"

_FENCED_BLOCK = re.compile(r"```[ \t]*[\w+.-]*[ \t]*\r?\n?(.*?)```", flags=re.DOTALL)
_FENCE_MARKER = re.compile(r"```[ \t]*[\w+.-]*")

_log = get_logger("pagesmith.extraction")


class _StageFailed(ValueError):
    """Internal signal: the current cascade stage produced nothing usable."""


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """
    Outcome of running the cascade over one reply.

    Attributes
    ----------
    blocks : tuple[Any, ...]
        Raw block candidates (not yet validated; may contain non-objects).
    stage : ExtractionStage | None
        The stage that succeeded, or ``None`` if all four failed.
    errors : tuple[str, ...]
        One ``"<stage>: <error>"`` entry per failed stage, in order.
    """

    blocks: tuple[Any, ...]
    stage: ExtractionStage | None
    errors: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.stage is not None


# ===========================================================================
# Helpers
# ===========================================================================


def _loads_container(candidate: str) -> Any:
    """Parse ``candidate`` and insist on an object or array."""
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise _StageFailed(f"{exc.msg} at line {exc.lineno} column {exc.colno}") from exc
    if not isinstance(value, dict | list):
        raise _StageFailed(f"parsed value is a {type(value).__name__}, not an object or array")
    return value


def find_balanced_object(text: str) -> str | None:
    """Return the first ``{...}`` span whose braces balance, or ``None``.

    Braces inside JSON string literals are ignored, including escaped quotes.

    Examples
    --------
    >>> find_balanced_object('x {"a": {"b": "}"}} y')
    '{"a": {"b": "}"}}'
    >>> find_balanced_object("no braces") is None
    True
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for index in range(start, len(text)):
        ch = text[index]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


# ===========================================================================
# Cascade stages
# ===========================================================================


def _stage_direct(text: str) -> Any:
    if not text.strip():
        raise _StageFailed("reply is empty")
    return _loads_container(text.strip())


def _stage_fenced(text: str) -> Any:
    bodies = _FENCED_BLOCK.findall(text)
    if not bodies:
        raise _StageFailed("no fenced code block found")
    errors: list[str] = []
    for body in bodies:
        try:
            return _loads_container(body.strip())
        except _StageFailed as exc:
            errors.append(str(exc))
    raise _StageFailed(f"{len(bodies)} fenced block(s) did not parse: {'; '.join(errors)}")


def _stage_boundary(text: str) -> Any:
    candidate = find_balanced_object(text)
    if candidate is None:
        raise _StageFailed("no balanced {...} span found")
    return _loads_container(candidate)


def _stage_cleanup(text: str) -> Any:
    stripped = _FENCE_MARKER.sub("", text)
    first = stripped.find("{")
    last = stripped.rfind("}")
    if first == -1 or last <= first:
        raise _StageFailed("no '{' ... '}' region left after cleanup")
    return _loads_container(stripped[first : last + 1])


_STAGES: tuple[tuple[ExtractionStage, Callable[[str], Any]], ...] = (
    ("direct", _stage_direct),
    ("fenced", _stage_fenced),
    ("boundary", _stage_boundary),
    ("cleanup", _stage_cleanup),
)


# ===========================================================================
# Public API
# ===========================================================================


def extract_json(raw: str) -> tuple[Any | None, ExtractionStage | None, tuple[str, ...]]:
    """Run the cascade and return ``(value, stage, errors)``.

    ``value`` and ``stage`` are ``None`` when every stage failed. Never raises.
    """
    text = raw if isinstance(raw, str) else ""
    errors: list[str] = []
    for name, stage in _STAGES:
        try:
            value = stage(text)
        except _StageFailed as exc:
            errors.append(f"{name}: {exc}")
            _log.warning("Extraction stage %r failed: %s", name, exc)
            continue
        _log.info("Extraction succeeded at stage %r", name)
        return value, name, tuple(errors)

    _log.warning("All extraction stages failed (%d chars of input)", len(text))
    return None, None, tuple(errors)


def canonical_block(raw: Any) -> Any:
    """Rename the bare ``type``/``key`` aliases of a block to ``_type``/``_key``.

    Non-mappings are returned unchanged. An underscore key that is already
    present wins over its alias, and the alias is discarded.
    """
    if not isinstance(raw, dict):
        return raw
    block = dict(raw)
    for alias, canonical in (("type", "_type"), ("key", "_key")):
        if alias in block:
            value = block.pop(alias)
            block.setdefault(canonical, value)
    return block


def normalise_blocks(value: Any) -> tuple[Any, ...]:
    """Turn a recovered JSON value into a tuple of raw block candidates."""
    if isinstance(value, dict):
        blocks = value.get(BLOCKS_KEY)
        if not isinstance(blocks, list):
            return ()
    elif isinstance(value, list):
        blocks = value
    else:
        return ()
    return tuple(canonical_block(b) for b in blocks)


def extract_blocks(raw: str) -> ExtractionResult:
    """Recover the raw block array from a model reply.

    Parameters
    ----------
    raw:
        The model's reply, verbatim. Empty strings and prose are accepted.

    Returns
    -------
    ExtractionResult
        Raw block candidates plus the stage that succeeded. On total failure
        ``blocks`` is empty and ``stage`` is ``None``.
    """
    value, stage, errors = extract_json(raw)
    blocks = normalise_blocks(value) if stage is not None else ()
    if stage is not None:
        _log.info("Extracted %d raw block(s) via %s stage", len(blocks), stage)
    return ExtractionResult(blocks=blocks, stage=stage, errors=errors)


__all__ = [
    "BLOCKS_KEY",
    "ExtractionResult",
    "ExtractionStage",
    "canonical_block",
    "extract_blocks",
    "extract_json",
    "find_balanced_object",
    "normalise_blocks",
]
