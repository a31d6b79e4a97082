"""Version-stamped cache for aggregates derived from the problem store."""

import time
from typing import Any, Callable, Dict, Optional, Tuple

from utils.logging_config import get_logger

logger = get_logger(__name__)


class VersionedCache:
    """Values are tagged with the version they were computed at.

    Write paths call ``invalidate()`` which bumps the version; anything
    computed under an older version, or older than ``max_age_seconds``, is
    recomputed on the next read.
    """

    def __init__(self, max_age_seconds: Optional[float] = 30.0, clock: Callable[[], float] = time.monotonic):
        self.max_age_seconds = max_age_seconds
        self.version = 0
        self.invalidations = 0
        self._clock = clock
        self._entries: Dict[str, Tuple[int, float, Any]] = {}

    def invalidate(self) -> int:
        self.version += 1
        self.invalidations += 1
        return self.version

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        version, stored_at, value = entry
        if version != self.version:
            return None
        if self.max_age_seconds is not None and self._clock() - stored_at > self.max_age_seconds:
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        # Entries from older versions can never be served again
        self._entries = {k: e for k, e in self._entries.items() if e[0] == self.version}
        self._entries[key] = (self.version, self._clock(), value)

    def get_or_compute(self, key: str, compute: Callable[[], Any]) -> Any:
        value = self.get(key)
        if value is None:
            logger.debug("Cache miss for %s at version %d", key, self.version)
            value = compute()
            self.set(key, value)
        return value

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


stats_cache = VersionedCache()
