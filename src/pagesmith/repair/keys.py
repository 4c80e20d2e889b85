"""Block and array-item key generation.

Keys follow the CMS editor convention ``<prefix>-<unix-ts>-<random>``, e.g.
``hero-1735551600-k3x9qa``. Both the clock and the random source are
injectable so that repairs are reproducible under test.
"""

from __future__ import annotations

import random
import string
import time
from collections.abc import Callable

_ALPHABET = string.ascii_lowercase + string.digits


class KeyFactory:
    """Produce keys that are unique within one factory's lifetime."""

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        suffix_length: int = 6,
    ) -> None:
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock
        self._suffix_length = suffix_length
        self._issued: set[str] = set()

    def new_key(self, prefix: str) -> str:
        """Return a fresh key for ``prefix`` never issued by this factory before."""
        stem = prefix.strip() or "block"
        while True:
            suffix = "".join(self._rng.choice(_ALPHABET) for _ in range(self._suffix_length))
            key = f"{stem}-{int(self._clock())}-{suffix}"
            if key not in self._issued:
                self._issued.add(key)
                return key

    def reserve(self, key: str) -> None:
        """Mark an externally supplied key as taken."""
        self._issued.add(key)


__all__ = ["KeyFactory"]
