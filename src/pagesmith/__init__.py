"""PageSmith package bootstrap.

PageSmith turns free-form language-model replies into CMS content blocks that
comply with a declarative block-type manifest.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.4.0"
