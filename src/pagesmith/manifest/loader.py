"""
Manifest loading and the process-wide manifest store.

The manifest is operator-controlled configuration: it is read once at
process start (bundled default, or the file named by
``PAGESMITH_MANIFEST_PATH``) and may later be replaced wholesale, e.g. when
an operator uploads a custom manifest through the CLI or API.

Replacement is atomic: :meth:`ManifestStore.swap` rebinds a single
reference, and a pipeline run captures :meth:`ManifestStore.current` once
at the start, so an in-flight request always sees one consistent snapshot.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar

from pydantic import ValidationError

from pagesmith.core.contracts.manifest import SchemaManifest
from pagesmith.core.settings import get_logger, load_settings

#: Manifest shipped with the package.
DEFAULT_MANIFEST_PATH: Path = Path(__file__).parent / "data" / "elportal-schema-manifest.json"

_log = get_logger("pagesmith.manifest")


class ManifestError(ValueError):
    """Raised when a manifest file is missing, unreadable, or malformed."""


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error.get("loc", ())) or "(root)"
        parts.append(f"{loc}: {error.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_manifest(payload: Mapping[str, Any]) -> SchemaManifest:
    """Validate a decoded manifest document.

    Raises
    ------
    ManifestError
        If the document does not describe a valid manifest.
    """
    if not isinstance(payload, Mapping):
        raise ManifestError("Manifest must be a JSON object with a 'contentBlockTypes' array")
    if "contentBlockTypes" not in payload:
        raise ManifestError("Manifest is missing the 'contentBlockTypes' array")
    try:
        return SchemaManifest.model_validate(dict(payload))
    except ValidationError as exc:
        raise ManifestError(f"Invalid manifest: {_format_validation_error(exc)}") from exc


def load_manifest(path: str | Path | None = None) -> SchemaManifest:
    """Load a manifest from ``path``, or the configured/bundled default.

    Resolution order: explicit ``path`` → ``PAGESMITH_MANIFEST_PATH`` →
    :data:`DEFAULT_MANIFEST_PATH`.
    """
    resolved = Path(path) if path is not None else load_settings().manifest_path
    if resolved is None:
        resolved = DEFAULT_MANIFEST_PATH
    resolved = resolved.expanduser()

    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest {resolved}: {exc}") from exc

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Manifest {resolved} is not valid JSON: {exc}") from exc

    manifest = parse_manifest(payload)
    _log.info(
        "Loaded manifest %s (version %s): %d block types, mandatory: %s",
        resolved.name,
        manifest.version,
        len(manifest.block_types),
        ", ".join(manifest.mandatory_types),
    )
    return manifest


class ManifestStore:
    """Holder of the active manifest with atomic wholesale replacement."""

    # Singleton instance placeholder (created lazily on first access)
    _instance: ClassVar[ManifestStore | None] = None

    def __init__(self, manifest: SchemaManifest | None = None) -> None:
        self._manifest: SchemaManifest | None = manifest
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> ManifestStore:
        """Accessor for the global singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def current(self) -> SchemaManifest:
        """Return the active manifest, loading the default on first use."""
        manifest = self._manifest
        if manifest is None:
            with self._lock:
                if self._manifest is None:
                    self._manifest = load_manifest()
                manifest = self._manifest
        return manifest

    def swap(self, manifest: SchemaManifest) -> SchemaManifest:
        """Install ``manifest`` and return the one it replaced (if loaded)."""
        with self._lock:
            previous = self._manifest
            self._manifest = manifest
        _log.info("Manifest swapped: now %d block types", len(manifest.block_types))
        return previous if previous is not None else manifest

    def reload(self, path: str | Path | None = None) -> SchemaManifest:
        """Load a manifest from disk and install it."""
        manifest = load_manifest(path)
        self.swap(manifest)
        return manifest


def get_manifest_store() -> ManifestStore:
    return ManifestStore.get_instance()


__all__ = [
    "DEFAULT_MANIFEST_PATH",
    "ManifestError",
    "ManifestStore",
    "get_manifest_store",
    "load_manifest",
    "parse_manifest",
]
