"""
Process-local response cache for the Posts service.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

from shared.logging import get_logger


@dataclass(frozen=True)
class CacheEntry:
    """A stored response payload and the wall-clock instant it was stored."""
    payload: Any
    stored_at: float


@dataclass(frozen=True)
class CacheHit:
    """Result of a lookup: the payload and how old it is, in seconds."""
    payload: Any
    age: float


class ResponseCache:
    """Key -> (payload, stored_at) map.

    Entries never expire on their own: freshness is decided by the caller
    against its own TTL, and a stale entry stays until it is overwritten or
    invalidated. Distinct keys are retained for the life of the process.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self.logger = get_logger("posts.response_cache")

    def get(self, key: str) -> Optional[CacheHit]:
        """Get the entry for ``key`` with its current age."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        return CacheHit(payload=entry.payload, age=max(0.0, self._clock() - entry.stored_at))

    def set(self, key: str, payload: Any) -> None:
        """Store ``payload`` under ``key``, replacing any previous entry."""
        self._entries[key] = CacheEntry(payload=payload, stored_at=self._clock())
        self.logger.debug("Cached response", key=key)

    def invalidate(self, key: str) -> bool:
        """Remove ``key``. Returns whether an entry was present."""
        removed = self._entries.pop(key, None) is not None
        self.logger.debug("Invalidated response", key=key, removed=removed)
        return removed

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))
