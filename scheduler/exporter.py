# scheduler/exporter.py
import hashlib
import json
import logging
import os
from datetime import datetime, timezone

from storefront.assembler import assemble_items, business_from_document
from storefront.config import STATIC_DATA_DIR, USERS_COLLECTION
from storefront.db import DocumentStore
from storefront.slugs import slugify
from utils.retry import backend_retry

logger = logging.getLogger("exporter")
logger.setLevel(logging.INFO)


def compute_hash_for_site(site):
    """
    SHA-256 over the exported business and items, excluding lastUpdated.

    Used to tell whether a business changed since the previous export.
    """
    body = {k: v for k, v in site.items() if k != "lastUpdated"}
    s = json.dumps(body, sort_keys=True, default=str)
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _load_previous_index(out_dir):
    path = os.path.join(out_dir, "index.json")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (FileNotFoundError, ValueError):
        return {}


@backend_retry(attempts=3)
async def _list_users(store):
    return await store.list_collection(USERS_COLLECTION)


@backend_retry(attempts=3)
async def _items_of(store, owner_id, doc, now):
    return await assemble_items(store, owner_id, doc, now)


async def export_static_data(store=None, out_dir=STATIC_DATA_DIR, now=None):
    """
    Write a static JSON snapshot of every storefront.

    Produces one ``<owner_id>.json`` per business with company data and items
    plus an ``index.json`` listing the exported owner ids together with a
    content hash per business. Businesses stored without a slug are exported
    under the slug of their name; the stored record is not modified.

    Reads go straight to the document store (they are not counted by the
    visitor read governor) and are retried with backoff.

    Args:
        store (DocumentStore, optional): Backend client
        out_dir (str): Target directory, created if missing
        now (datetime, optional): Export timestamp

    Returns:
        list[dict]: One entry per business that is new, updated or removed
            since the previous export:
            {"owner_id", "slug", "change_type": "new" | "updated" | "removed"}
    """
    store = store or DocumentStore()
    now = now or datetime.now(timezone.utc)
    os.makedirs(out_dir, exist_ok=True)

    previous = _load_previous_index(out_dir).get("hashes", {})
    hashes = {}
    changes = []

    for owner_id, doc in await _list_users(store):
        business = business_from_document(owner_id, doc)
        if business is None:
            continue
        if not business.slug:
            business.slug = slugify(business.name)

        items = await _items_of(store, owner_id, doc, now)
        site = {
            "companyData": business.model_dump(mode="json"),
            "products": [i.model_dump(mode="json") for i in items],
            "lastUpdated": now.isoformat(),
        }
        digest = compute_hash_for_site(site)
        hashes[owner_id] = digest

        if previous.get(owner_id) == digest:
            continue
        with open(os.path.join(out_dir, f"{owner_id}.json"), "w", encoding="utf-8") as f:
            json.dump(site, f, indent=2, ensure_ascii=False)
        changes.append(
            {
                "owner_id": owner_id,
                "slug": business.slug,
                "change_type": "updated" if owner_id in previous else "new",
            }
        )

    for owner_id in previous:
        if owner_id not in hashes:
            stale = os.path.join(out_dir, f"{owner_id}.json")
            if os.path.exists(stale):
                os.remove(stale)
            changes.append({"owner_id": owner_id, "slug": None, "change_type": "removed"})

    index = {
        "companies": list(hashes),
        "totalCompanies": len(hashes),
        "generatedAt": now.isoformat(),
        "hashes": hashes,
    }
    with open(os.path.join(out_dir, "index.json"), "w", encoding="utf-8") as f:
        json.dump(index, f, indent=2)

    logger.info(
        f"Static export finished: {len(hashes)} businesses, {len(changes)} changes"
    )
    return changes
