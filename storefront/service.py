# storefront/service.py
import json
import logging
import os

from pydantic import ValidationError

from .assembler import assemble_website
from .cache import CacheStore, utcnow
from .config import STATIC_DATA_DIR
from .db import BackendFault, DocumentStore
from .governor import ReadGovernor
from .resolver import SlugResolver

logger = logging.getLogger("storefront.service")

# raised by stored documents that do not have the expected layout
SHAPE_ERRORS = (AttributeError, KeyError, TypeError)


class DataService:
    """
    Visitor-facing read path for storefront data.

    Every lookup goes cache -> governor -> backend:

        1. A fresh cache hit is returned without touching the governor.
        2. If the governor refuses the read, the last cached payload for the
           key is returned even when stale, otherwise None.
        3. Otherwise the business is resolved and assembled, the result is
           cached (evicting the oldest entries first when the cache is full)
           and the read is recorded.

    Misses are never cached. Backend faults and malformed documents are
    logged and reported as None, the same as "not found", so the caller only
    ever sees a payload or None.

    Args:
        store (DocumentStore, optional): Backend client
        cache (CacheStore, optional): Shared cache, created if omitted
        governor (ReadGovernor, optional): Shared governor, created if omitted
        clock (callable): Current aware datetime, shared with cache/governor
            when those are created here
        static_dir (str): Directory holding the static export index
    """

    def __init__(
        self,
        store=None,
        cache=None,
        governor=None,
        clock=utcnow,
        static_dir=STATIC_DATA_DIR,
    ):
        self.store = store or DocumentStore()
        self.cache = cache if cache is not None else CacheStore(clock=clock)
        self.governor = governor or ReadGovernor(clock=clock)
        self.resolver = SlugResolver(self.store)
        self.static_dir = static_dir
        self._clock = clock

    async def resolve_website_by_slug(self, slug):
        """
        Return the WebsitePayload published under slug, or None.

        The slug may be an old (alias) slug; compare the payload's
        canonical_slug with the requested one to decide on a redirect.
        """
        return await self._lookup(slug, self.resolver.resolve)

    async def get_website_data(self, owner_id):
        """Same as resolve_website_by_slug but keyed by the owner id."""
        return await self._lookup(owner_id, self.resolver.resolve_owner)

    async def get_item(self, slug, item_id):
        """
        Return (payload, item) for a product detail page.

        Either element may be None: payload is None when the site is
        unavailable, item is None when the site has no such item.
        """
        payload = await self.resolve_website_by_slug(slug)
        if payload is None:
            return None, None
        return payload, payload.find_item(item_id)

    async def _lookup(self, key, resolve):
        """
        Cache -> governor -> backend for one key.

        record_read() runs whenever the backend calls completed without a
        fault, including lookups that matched nothing: a query that finds no
        business is still a metered read. Only found payloads are cached.
        Faults and documents that cannot be shaped into a payload are logged
        and return None without counting a read.
        """
        payload = self.cache.get(key)
        if payload is not None:
            return payload

        if not self.governor.admit():
            entry = self.cache.peek(key)
            if entry is not None:
                logger.info(f"Serving stale cache for '{key}' ({self.governor.last_denial})")
                return entry.payload
            return None

        try:
            payload = await self._fetch(key, resolve)
        except (BackendFault, ValidationError, *SHAPE_ERRORS):
            logger.exception(f"Error fetching website data for '{key}'")
            return None

        self.governor.record_read()
        if payload is None:
            return None

        if key not in self.cache:
            self.governor.maybe_evict(self.cache)
        self.cache.put(key, payload)
        return payload

    async def _fetch(self, key, resolve):
        resolution = await resolve(key)
        if resolution is None:
            return None
        return await assemble_website(
            self.store, resolution.owner_id, resolution.document, self._clock()
        )

    def invalidate(self, *keys):
        """Drop cached payloads so the next lookup of each key goes to the backend."""
        for key in keys:
            if key:
                self.cache.invalidate(key)

    def clear_cache(self):
        self.cache.clear_all()

    def get_governor_stats(self):
        return self.governor.stats(self.cache)

    def get_all_companies(self):
        """
        Return the owner ids listed in the static export index.

        Returns an empty list when no export has been generated yet or the
        index cannot be read.
        """
        path = os.path.join(self.static_dir, "index.json")
        try:
            with open(path, "r", encoding="utf-8") as f:
                index = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError):
            logger.exception(f"Error reading companies index {path}")
            return []
        return list(index.get("companies") or [])


_service = None


def get_data_service():
    """Return the process-wide DataService, creating it on first use."""
    global _service
    if _service is None:
        _service = DataService()
    return _service
