"""Core package initializer for PageSmith.

Downstream code imports the concrete modules directly:
    from pagesmith.core.settings import settings, load_settings, Settings, get_logger
    from pagesmith.core.contracts.manifest import SchemaManifest
"""

from __future__ import annotations

__all__ = ["__doc__"]
