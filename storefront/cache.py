# storefront/cache.py
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone

from .config import CACHE_FRESHNESS_WINDOW, MAX_CACHE_SIZE

logger = logging.getLogger("storefront.cache")


def utcnow():
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    key: str
    payload: object
    fetched_at: datetime


class CacheStore:
    """
    In-process mapping from a lookup key (owner id or slug) to the last
    WebsitePayload fetched for it.

    Expiry is evaluated lazily on get(); nothing is swept in the background.
    An entry is fresh iff ``now - fetched_at < freshness``, so an entry whose
    age equals the window exactly is already expired. Expired entries stay
    in the store until they are overwritten, evicted or invalidated, which
    lets the lookup path fall back to them via peek() when a backend read is
    refused.

    Args:
        capacity (int): Entry count at which the ReadGovernor starts evicting
        freshness (timedelta): Freshness window
        clock (callable): Returns the current aware datetime
    """

    def __init__(
        self, capacity=MAX_CACHE_SIZE, freshness=CACHE_FRESHNESS_WINDOW, clock=utcnow
    ):
        self.capacity = capacity
        self.freshness = freshness
        self._clock = clock
        self._entries = {}

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return key in self._entries

    def is_fresh(self, entry):
        return self._clock() - entry.fetched_at < self.freshness

    def get(self, key):
        """Return the payload for key if present and fresh, else None."""
        entry = self._entries.get(key)
        if entry is None or not self.is_fresh(entry):
            return None
        return entry.payload

    def peek(self, key):
        """Return the entry for key regardless of age, or None."""
        return self._entries.get(key)

    def put(self, key, payload):
        self._entries[key] = CacheEntry(key, payload, self._clock())

    def evict_oldest(self, fraction):
        """
        Remove the oldest ``ceil(size * fraction)`` entries by fetched_at.

        Returns:
            list[str]: Keys that were evicted, oldest first
        """
        count = math.ceil(len(self._entries) * fraction)
        if count <= 0:
            return []
        oldest = sorted(self._entries.values(), key=lambda e: e.fetched_at)[:count]
        for entry in oldest:
            del self._entries[entry.key]
        logger.info(f"Evicted {len(oldest)} cache entries ({len(self._entries)} left)")
        return [e.key for e in oldest]

    def invalidate(self, key):
        self._entries.pop(key, None)

    def clear_all(self):
        self._entries.clear()
