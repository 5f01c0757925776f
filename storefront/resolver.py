# storefront/resolver.py
import logging
from dataclasses import dataclass

from .config import USERS_COLLECTION

logger = logging.getLogger("storefront.resolver")

SLUG_FIELD = "companyData.slug"
OLD_SLUGS_FIELD = "oldSlugs"


@dataclass
class Resolution:
    owner_id: str
    document: dict
    via_alias: bool = False


def _first_business(matches):
    for owner_id, doc in matches:
        if isinstance(doc.get("companyData"), dict):
            return owner_id, doc
    return None


class SlugResolver:
    """
    Turns a public slug into the business document it belongs to.

    Direct resolution matches the canonical ``companyData.slug``. When that
    finds nothing, alias resolution looks for the slug in the ``oldSlugs``
    list kept for renamed businesses. In both steps the first match in store
    order wins; with MongoDB that is natural (insertion) order, which is the
    only tie-break offered for slugs that were reused across businesses.

    Backend faults propagate as BackendFault.
    """

    def __init__(self, store, collection=USERS_COLLECTION):
        self.store = store
        self.collection = collection

    async def resolve_direct(self, slug):
        found = _first_business(
            await self.store.query_equals(self.collection, SLUG_FIELD, slug)
        )
        if found:
            return Resolution(*found)
        return None

    async def resolve_alias(self, slug):
        found = _first_business(
            await self.store.query_equals(self.collection, OLD_SLUGS_FIELD, slug)
        )
        if found:
            owner_id, doc = found
            logger.info(
                f"Slug '{slug}' resolved via alias to "
                f"'{doc['companyData'].get('slug')}' (owner {owner_id})"
            )
            return Resolution(owner_id, doc, via_alias=True)
        return None

    async def resolve(self, slug):
        """Return the Resolution for slug, or None if no business uses it."""
        return await self.resolve_direct(slug) or await self.resolve_alias(slug)

    async def resolve_owner(self, owner_id):
        doc = await self.store.get_by_id(self.collection, owner_id)
        if doc and isinstance(doc.get("companyData"), dict):
            return Resolution(owner_id, doc)
        return None
