"""
Per-route cache policy for the Posts service.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger
from .response_cache import CacheHit, ResponseCache

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class TTLClass(str, Enum):
    """How long a route tolerates stale responses."""
    FAST = "fast"
    SLOW = "slow"


@dataclass(frozen=True)
class CacheRoute:
    """A cacheable read route: its key prefix and TTL class."""
    name: str
    ttl_class: TTLClass

    def key(self, param: Optional[str] = None) -> str:
        """Cache key for this route. ``param`` is used verbatim."""
        if param is None:
            return self.name
        return f"{self.name}:{param}"


POST_COUNT = CacheRoute("post_count", TTLClass.FAST)
POST_LIST = CacheRoute("post_list", TTLClass.SLOW)
POST_BY_ID = CacheRoute("post_by_id", TTLClass.FAST)
POST_SEARCH = CacheRoute("post_search", TTLClass.FAST)

# Keys a newly created post can change. Id lookups and searches are left to
# expire on their TTL.
INVALIDATED_ON_CREATE: Tuple[str, ...] = (POST_LIST.key(), POST_COUNT.key())


class CacheManager:
    """Applies TTLs and the write invalidation policy on top of a ResponseCache."""

    def __init__(
        self,
        cache: ResponseCache,
        fast_ttl_seconds: float,
        slow_ttl_seconds: float,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.metrics = metrics
        self.logger = get_logger("posts.cache_manager")
        self._ttls = {
            TTLClass.FAST: fast_ttl_seconds,
            TTLClass.SLOW: slow_ttl_seconds,
        }

    def ttl_for(self, route: CacheRoute) -> float:
        return self._ttls[route.ttl_class]

    def lookup(self, route: CacheRoute, param: Optional[str] = None) -> Optional[CacheHit]:
        """Return the cached response for the route if it is younger than its TTL."""
        key = route.key(param)
        hit = self.cache.get(key)
        fresh = hit is not None and hit.age < self.ttl_for(route)

        if self.metrics:
            self.metrics.record_cache_lookup(route.name, fresh)

        if fresh:
            self.logger.debug("Cache hit", key=key, age=round(hit.age, 3))
            return hit

        self.logger.debug("Cache miss", key=key, stale=hit is not None)
        return None

    def store(self, route: CacheRoute, payload: Any, param: Optional[str] = None) -> None:
        """Overwrite the route's entry with a freshly computed payload."""
        self.cache.set(route.key(param), payload)

    def invalidate_after_create(self) -> None:
        """Drop the responses a new post makes wrong: the full listing and the count."""
        for key in INVALIDATED_ON_CREATE:
            self.cache.invalidate(key)
            if self.metrics:
                self.metrics.record_cache_invalidation(key)
        self.logger.info("Invalidated cached responses after create", keys=list(INVALIDATED_ON_CREATE))
