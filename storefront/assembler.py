# storefront/assembler.py
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .cache import utcnow
from .config import PRODUCTS_SUBCOLLECTION, USERS_COLLECTION
from .models import BusinessRecord, Item, WebsitePayload


class ItemShape(Enum):
    SUBCOLLECTION = "subcollection"
    EMBEDDED = "embedded"  # legacy: items array on the business document


@dataclass
class ItemSource:
    shape: ItemShape
    entries: list  # (storage key or None, raw dict)


def business_from_document(owner_id, doc):
    """
    Map a stored user document onto a BusinessRecord.

    The document keeps the business under ``companyData`` and previous slugs
    under a top-level ``oldSlugs`` list. Returns None when the user never
    completed onboarding (no companyData) or when companyData is not a
    mapping.
    """
    company = (doc or {}).get("companyData")
    if not company or not isinstance(company, dict):
        return None
    old_slugs = doc.get("oldSlugs")
    if not isinstance(old_slugs, list):
        old_slugs = []
    owners = company.get("owners")
    if not isinstance(owners, list):
        owners = []
    return BusinessRecord(
        owner_id=owner_id,
        name=company.get("name", ""),
        town=company.get("town", ""),
        description=company.get("description"),
        payment_handle=company.get("swishNumber"),
        instagram=company.get("instagram"),
        facebook=company.get("facebook"),
        tiktok=company.get("tiktok"),
        owners=[o for o in owners if isinstance(o, str)],
        slug=company.get("slug"),
        old_slugs=[s for s in old_slugs if isinstance(s, str)],
    )


def _as_datetime(value, default):
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return default
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return default


def select_item_source(sub_entries, record_doc):
    """
    Decide once which storage shape the items of a business come from.

    The embedded array is used only when the subcollection listing came back
    empty and the business document still carries a non-empty ``products``
    array. The two sources are never merged. An embedded value that is not
    a list is ignored.
    """
    if sub_entries:
        return ItemSource(ItemShape.SUBCOLLECTION, list(sub_entries))
    embedded = (record_doc or {}).get("products")
    if isinstance(embedded, list) and embedded:
        return ItemSource(ItemShape.EMBEDDED, [(None, e) for e in embedded])
    return ItemSource(ItemShape.SUBCOLLECTION, [])


def items_from_source(source, now=None):
    """
    Convert raw item dicts into Items.

    For subcollection documents the document's own ``id`` field wins over
    its storage key. Legacy embedded entries without an id get one derived
    from the current time in milliseconds (suffixed with their position so
    entries converted in the same millisecond stay distinct), and missing
    timestamps default to now. A missing or null price reads as 0 and
    entries that are not mappings are skipped.
    """
    now = now or utcnow()
    millis = int(now.timestamp() * 1000)
    items = []
    for index, (key, raw) in enumerate(source.entries):
        if not isinstance(raw, dict):
            continue
        item_id = raw.get("id") or key
        if not item_id:
            item_id = f"{millis}-{index}"
        items.append(
            Item(
                id=str(item_id),
                name=raw.get("name", ""),
                description=raw.get("description") or "",
                price=raw.get("price") or 0,
                type=raw.get("type") or "product",
                image_url=raw.get("imageUrl"),
                created_at=_as_datetime(raw.get("createdAt"), now),
                updated_at=_as_datetime(raw.get("updatedAt"), now),
            )
        )
    return items


async def assemble_items(store, owner_id, record_doc=None, now=None):
    """
    Load the ordered items of a business.

    Args:
        store (DocumentStore): Backend client
        owner_id (str): Business (owner) id
        record_doc (dict, optional): Already fetched business document, used
            for the legacy embedded fallback
        now (datetime, optional): Timestamp for synthesized fields

    Returns:
        list[Item]: Items in store order

    Raises:
        BackendFault: If the subcollection listing fails
    """
    sub_entries = await store.list_subcollection(
        USERS_COLLECTION, owner_id, PRODUCTS_SUBCOLLECTION
    )
    return items_from_source(select_item_source(sub_entries, record_doc), now)


async def assemble_website(store, owner_id, record_doc, now=None):
    business = business_from_document(owner_id, record_doc)
    if business is None:
        return None
    items = await assemble_items(store, owner_id, record_doc, now)
    return WebsitePayload(business=business, items=items)
