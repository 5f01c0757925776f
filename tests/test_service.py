# tests/test_service.py
import json
from datetime import timedelta

import pytest


@pytest.mark.asyncio
async def test_resolve_by_canonical_slug(service):
    payload = await service.resolve_website_by_slug("acme-2")

    assert payload.business.name == "Acme"
    assert payload.canonical_slug == "acme-2"
    assert [i.id for i in payload.items] == ["p1", "p2"]
    assert service.governor.daily_count == 1


@pytest.mark.asyncio
async def test_fresh_hit_has_no_side_effects(service, fake_db, clock):
    first = await service.resolve_website_by_slug("acme-2")
    calls = fake_db.calls

    clock.advance(minutes=5)
    second = await service.resolve_website_by_slug("acme-2")

    assert second is first
    assert fake_db.calls == calls
    assert service.governor.daily_count == 1


@pytest.mark.asyncio
async def test_alias_resolves_to_same_payload(service):
    by_alias = await service.resolve_website_by_slug("acme")
    by_slug = await service.resolve_website_by_slug("acme-2")

    assert by_alias.model_dump() == by_slug.model_dump()
    # caller decides on the redirect
    assert by_alias.canonical_slug == "acme-2"


@pytest.mark.asyncio
async def test_alias_first_match_in_store_order(service, fake_db):
    """Reused old slugs resolve to the first business in store (insertion) order."""
    fake_db["users"].docs[3]["oldSlugs"] = ["acme"]
    payload = await service.resolve_website_by_slug("acme")
    assert payload.business.owner_id == "u1"


@pytest.mark.asyncio
async def test_direct_match_beats_alias(service, fake_db):
    fake_db["users"].docs[3]["companyData"]["slug"] = "acme"
    payload = await service.resolve_website_by_slug("acme")
    assert payload.business.owner_id == "u4"


@pytest.mark.asyncio
async def test_user_without_business_is_not_resolved(service, fake_db):
    assert await service.get_website_data("u3") is None


@pytest.mark.asyncio
async def test_stale_entry_preferred_over_absent(make_service, clock):
    service = make_service(max_daily_reads=1)
    cached = await service.resolve_website_by_slug("acme-2")

    clock.advance(minutes=11)
    assert service.cache.get("acme-2") is None

    payload = await service.resolve_website_by_slug("acme-2")

    assert payload is cached
    assert service.governor.last_denial == "daily-limit"
    assert service.governor.daily_count == 1


@pytest.mark.asyncio
async def test_throttled_lookup_serves_stale(make_service, clock):
    service = make_service(
        min_read_interval=timedelta(seconds=30), freshness=timedelta(seconds=10)
    )
    cached = await service.resolve_website_by_slug("bike-shop")
    clock.advance(seconds=15)

    assert await service.resolve_website_by_slug("bike-shop") is cached
    assert service.governor.last_denial == "throttled"
    # a different slug has nothing stale to fall back to
    assert await service.resolve_website_by_slug("acme-2") is None


@pytest.mark.asyncio
async def test_scenario_three_slugs_with_two_reads(make_service):
    service = make_service(max_daily_reads=2)

    assert await service.resolve_website_by_slug("acme-2") is not None
    assert await service.resolve_website_by_slug("legacy-bakery") is not None
    assert await service.resolve_website_by_slug("bike-shop") is None

    assert "acme-2" in service.cache
    assert "legacy-bakery" in service.cache
    assert "bike-shop" not in service.cache


@pytest.mark.asyncio
async def test_invalidation_forces_fresh_admission(make_service, fake_db):
    service = make_service(max_daily_reads=1)
    await service.resolve_website_by_slug("acme-2")

    service.invalidate("acme-2")

    # entry would still be fresh, but the lookup now needs a read and the
    # budget is spent
    assert await service.resolve_website_by_slug("acme-2") is None


@pytest.mark.asyncio
async def test_invalidation_refetches(service, fake_db):
    await service.resolve_website_by_slug("acme-2")
    fake_db["users"].docs[0]["companyData"]["description"] = "Now with coffee"
    calls = fake_db.calls

    service.invalidate("acme-2")
    payload = await service.resolve_website_by_slug("acme-2")

    assert fake_db.calls > calls
    assert payload.business.description == "Now with coffee"
    assert service.governor.daily_count == 2


@pytest.mark.asyncio
async def test_eviction_when_cache_full(make_service, clock):
    service = make_service(capacity=2)
    await service.resolve_website_by_slug("acme-2")
    clock.advance(seconds=1)
    await service.resolve_website_by_slug("legacy-bakery")
    clock.advance(seconds=1)

    await service.resolve_website_by_slug("bike-shop")

    assert len(service.cache) == 2
    assert "acme-2" not in service.cache
    assert "bike-shop" in service.cache


@pytest.mark.asyncio
async def test_refreshing_existing_key_does_not_evict(make_service, clock):
    service = make_service(capacity=2)
    await service.resolve_website_by_slug("acme-2")
    clock.advance(seconds=1)
    await service.resolve_website_by_slug("legacy-bakery")
    clock.advance(minutes=11)

    await service.resolve_website_by_slug("legacy-bakery")

    assert "acme-2" in service.cache
    assert len(service.cache) == 2


@pytest.mark.asyncio
async def test_miss_is_not_cached(service, fake_db):
    assert await service.resolve_website_by_slug("new-shop") is None
    assert "new-shop" not in service.cache

    fake_db["users"].docs.append(
        {
            "_id": "u9",
            "companyData": {"name": "New Shop", "town": "Visby", "slug": "new-shop"},
        }
    )
    payload = await service.resolve_website_by_slug("new-shop")
    assert payload.business.owner_id == "u9"


@pytest.mark.asyncio
async def test_miss_still_counts_as_read(service):
    await service.resolve_website_by_slug("nobody")
    assert service.governor.daily_count == 1


@pytest.mark.asyncio
async def test_backend_fault_reads_as_absent(service, fake_db):
    fake_db.fail = True

    assert await service.resolve_website_by_slug("acme-2") is None
    assert service.governor.daily_count == 0
    assert len(service.cache) == 0

    fake_db.fail = False
    assert await service.resolve_website_by_slug("acme-2") is not None


@pytest.mark.asyncio
async def test_malformed_document_reads_as_absent(service, fake_db):
    fake_db["users.products"].docs.append(
        {"_id": "u4/bad", "parent_id": "u4", "id": "bad", "name": "X", "price": -5}
    )
    assert await service.resolve_website_by_slug("bike-shop") is None


@pytest.mark.asyncio
async def test_legacy_products_stored_as_map_are_ignored(service, fake_db):
    fake_db["users"].docs[3]["products"] = {
        "p1": {"name": "Bike", "price": 100, "type": "product"}
    }
    payload = await service.resolve_website_by_slug("bike-shop")
    assert payload.business.name == "Bike Shop"
    assert payload.items == []


@pytest.mark.asyncio
async def test_legacy_entries_that_are_not_mappings_are_skipped(service, fake_db):
    fake_db["users"].docs[1]["products"].append("Muffin")
    payload = await service.resolve_website_by_slug("legacy-bakery")
    assert [i.name for i in payload.items] == ["Cake", "Catering"]


@pytest.mark.asyncio
async def test_legacy_null_price_reads_as_zero(service, fake_db):
    fake_db["users"].docs[1]["products"][0]["price"] = None
    del fake_db["users"].docs[1]["products"][1]["price"]
    payload = await service.resolve_website_by_slug("legacy-bakery")
    assert [i.price for i in payload.items] == [0, 0]


@pytest.mark.asyncio
async def test_company_data_not_a_mapping_is_unavailable(service, fake_db):
    fake_db["users"].docs.append({"_id": "u8", "companyData": "broken"})
    assert await service.get_website_data("u8") is None

    fake_db["users"].docs.append(
        {"_id": "u7", "companyData": "broken", "oldSlugs": ["ghost"]}
    )
    assert await service.resolve_website_by_slug("ghost") is None


@pytest.mark.asyncio
async def test_unexpected_field_types_are_normalized(service, fake_db):
    fake_db["users"].docs[3]["companyData"]["owners"] = "Olle"
    fake_db["users.products"].docs.append(
        {"_id": "u4/k1", "parent_id": "u4", "id": "k1", "name": "Bell",
         "price": 5, "createdAt": 12345}
    )
    payload = await service.resolve_website_by_slug("bike-shop")
    assert payload.business.owners == []
    assert payload.items[0].name == "Bell"


@pytest.mark.asyncio
async def test_shape_error_during_assembly_is_unavailable(
    service, fake_db, monkeypatch
):
    def broken(*args, **kwargs):
        raise AttributeError("'str' object has no attribute 'get'")

    monkeypatch.setattr("storefront.assembler.items_from_source", broken)

    assert await service.resolve_website_by_slug("bike-shop") is None
    assert "bike-shop" not in service.cache
    assert service.governor.daily_count == 0

@pytest.mark.asyncio
async def test_lookup_by_owner_id(service):
    payload = await service.get_website_data("u2")
    assert payload.business.slug == "legacy-bakery"
    assert [i.name for i in payload.items] == ["Cake", "Catering"]
    assert "u2" in service.cache


@pytest.mark.asyncio
async def test_get_item(service):
    payload, item = await service.get_item("acme-2", "p2")
    assert item.name == "Baking class"

    payload, item = await service.get_item("acme-2", "missing")
    assert payload is not None and item is None

    assert await service.get_item("nowhere", "p1") == (None, None)


@pytest.mark.asyncio
async def test_governor_stats(service):
    await service.resolve_website_by_slug("acme-2")
    stats = service.get_governor_stats()
    assert stats.daily_reads == 1
    assert stats.cache_size == 1
    assert stats.max_cache_size == 100
    assert stats.level == "ok"


def test_all_companies_without_export(service):
    assert service.get_all_companies() == []


def test_all_companies_reads_index(service, tmp_path):
    (tmp_path / "index.json").write_text(json.dumps({"companies": ["u1", "u2"]}))
    assert service.get_all_companies() == ["u1", "u2"]


def test_all_companies_with_corrupt_index(service, tmp_path):
    (tmp_path / "index.json").write_text("{not json")
    assert service.get_all_companies() == []
