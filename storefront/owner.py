# storefront/owner.py
import logging
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .assembler import business_from_document
from .cache import utcnow
from .config import MAX_IMAGE_LENGTH, PRODUCTS_SUBCOLLECTION, USERS_COLLECTION
from .models import Item
from .slugs import slugify, unique_slug

logger = logging.getLogger("storefront.owner")


class OwnerError(Exception):
    pass


class BusinessNotFound(OwnerError):
    pass


class ItemNotFound(OwnerError):
    pass


class InvalidItem(OwnerError):
    pass


class BusinessInput(BaseModel):
    name: str = Field(..., min_length=1)
    town: str = Field(..., min_length=1)
    description: Optional[str] = None
    payment_handle: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    tiktok: Optional[str] = None
    owners: List[str] = Field(default_factory=list)


class ItemInput(BaseModel):
    name: str
    description: str
    price: float = Field(..., ge=0)
    type: Literal["product", "service"] = "product"
    image_url: Optional[str] = None


def _blank_to_none(value):
    if value is None:
        return None
    value = value.strip()
    return value or None


def _company_document(data, slug):
    """Build the stored companyData dict, dropping empty optional fields."""
    company = {
        "name": data.name.strip(),
        "town": data.town.strip(),
        "owners": [o.strip() for o in data.owners if o.strip()],
        "slug": slug,
    }
    for field, stored in (
        ("description", "description"),
        ("payment_handle", "swishNumber"),
        ("instagram", "instagram"),
        ("facebook", "facebook"),
        ("tiktok", "tiktok"),
    ):
        value = _blank_to_none(getattr(data, field))
        if value is not None:
            company[stored] = value
    return company


async def _load_business_doc(store, owner_id):
    doc = await store.get_by_id(USERS_COLLECTION, owner_id)
    if not doc or not doc.get("companyData"):
        raise BusinessNotFound(owner_id)
    return doc


def _cache_keys(owner_id, doc):
    business = business_from_document(owner_id, doc)
    return [owner_id, business.slug, *business.old_slugs]


async def create_business(store, service, owner_id, data, now=None):
    """
    Store the business an owner described during onboarding.

    The slug is derived from the name, with the town appended when another
    business already holds it. Cached payloads for the owner id and the new
    slug are dropped after the write.

    Returns:
        BusinessRecord: The stored business
    """
    now = now or utcnow()
    slug = await unique_slug(store, data.name, data.town, owner_id)
    company = _company_document(data, slug)
    await store.merge_document(
        USERS_COLLECTION, owner_id, {"companyData": company, "updatedAt": now}
    )
    service.invalidate(owner_id, slug)
    logger.info(f"Created business '{slug}' for owner {owner_id}")
    return business_from_document(owner_id, {"companyData": company})


async def update_business(store, service, owner_id, data, now=None):
    """
    Edit an existing business.

    A name change that produces a different slug moves the previous slug
    into oldSlugs so existing links keep resolving. Every key the business
    could be cached under (owner id, old slug, new slug, aliases) is
    invalidated after the write.

    Raises:
        BusinessNotFound: If the owner has no business yet
    """
    now = now or utcnow()
    doc = await _load_business_doc(store, owner_id)
    stale_keys = _cache_keys(owner_id, doc)

    current = doc["companyData"]
    old_slug = current.get("slug")
    if old_slug and slugify(data.name) == slugify(current.get("name")):
        new_slug = old_slug
    else:
        new_slug = await unique_slug(store, data.name, data.town, owner_id)

    old_slugs = [s for s in doc.get("oldSlugs") or [] if s != new_slug]
    if old_slug and old_slug != new_slug and old_slug not in old_slugs:
        old_slugs.append(old_slug)

    company = _company_document(data, new_slug)
    await store.merge_document(
        USERS_COLLECTION,
        owner_id,
        {"companyData": company, "oldSlugs": old_slugs, "updatedAt": now},
    )
    service.invalidate(*stale_keys, new_slug)
    if new_slug != old_slug:
        logger.info(f"Business of owner {owner_id} renamed '{old_slug}' -> '{new_slug}'")
    return business_from_document(
        owner_id, {"companyData": company, "oldSlugs": old_slugs}
    )


async def save_item(store, service, owner_id, data, item_id=None, now=None):
    """
    Create or update one product/service of a business.

    New items get the current time in milliseconds as id. Image payloads
    longer than MAX_IMAGE_LENGTH characters are not stored.

    Args:
        store (DocumentStore): Backend client
        service (DataService): Read path whose cache is invalidated
        owner_id (str): Owning business
        data (ItemInput): Submitted fields
        item_id (str, optional): Id of the item to update; None creates one

    Returns:
        Item: The stored item

    Raises:
        BusinessNotFound: If the owner has no business
        ItemNotFound: If item_id does not exist
        InvalidItem: If name or description is blank
    """
    now = now or utcnow()
    if not data.name.strip() or not data.description.strip():
        raise InvalidItem("name and description are required")

    doc = await _load_business_doc(store, owner_id)

    created_at = now
    if item_id is not None:
        existing = dict(
            await store.list_subcollection(
                USERS_COLLECTION, owner_id, PRODUCTS_SUBCOLLECTION
            )
        )
        if item_id not in existing:
            raise ItemNotFound(item_id)
        created_at = existing[item_id].get("createdAt") or now
    else:
        item_id = str(int(now.timestamp() * 1000))

    body = {
        "id": item_id,
        "name": data.name.strip(),
        "description": data.description.strip(),
        "price": data.price,
        "type": data.type,
        "createdAt": created_at,
        "updatedAt": now,
    }
    if data.image_url:
        if len(data.image_url) < MAX_IMAGE_LENGTH:
            body["imageUrl"] = data.image_url
        else:
            logger.warning(
                f"Dropping image of item {item_id}: {len(data.image_url)} chars"
            )

    await store.set_subdocument(
        USERS_COLLECTION, owner_id, PRODUCTS_SUBCOLLECTION, item_id, body
    )
    service.invalidate(*_cache_keys(owner_id, doc))
    return Item(
        id=item_id,
        name=body["name"],
        description=body["description"],
        price=body["price"],
        type=body["type"],
        image_url=body.get("imageUrl"),
        created_at=created_at,
        updated_at=now,
    )


async def delete_item(store, service, owner_id, item_id):
    doc = await _load_business_doc(store, owner_id)
    removed = await store.delete_subdocument(
        USERS_COLLECTION, owner_id, PRODUCTS_SUBCOLLECTION, item_id
    )
    if not removed:
        raise ItemNotFound(item_id)
    service.invalidate(*_cache_keys(owner_id, doc))
