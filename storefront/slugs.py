# storefront/slugs.py
import logging
import re

from .config import USERS_COLLECTION
from .db import BackendFault
from .resolver import SLUG_FIELD

logger = logging.getLogger("storefront.slugs")

_SWEDISH = str.maketrans({"å": "a", "ä": "a", "ö": "o"})


def slugify(text):
    """
    Derive a URL-safe slug from a business or town name.

    Lowercases, folds å/ä/ö to a/a/o, turns every other character outside
    [a-z0-9] into "-", collapses runs of "-" and trims them from both ends.

    Example:
        >>> slugify("Åsas Bageri & Café")
        'asas-bageri-caf'
    """
    s = (text or "").lower().translate(_SWEDISH)
    s = re.sub(r"[^a-z0-9]", "-", s)
    s = re.sub(r"-+", "-", s)
    return s.strip("-")


async def unique_slug(store, name, town, owner_id=None):
    """
    Pick the slug for a business being created or renamed.

    Returns the slug of the name, or "<name-slug>-<town-slug>" when another
    business already uses the plain one. If the uniqueness check itself
    fails the plain slug is used.
    """
    base = slugify(name)
    try:
        taken = await store.query_equals(USERS_COLLECTION, SLUG_FIELD, base)
    except BackendFault:
        logger.exception(f"Error checking slug uniqueness for '{base}'")
        return base
    if any(other_id != owner_id for other_id, _ in taken):
        return f"{base}-{slugify(town)}"
    return base
