# tests/conftest.py
import sys
import os

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT_DIR)

from datetime import datetime, timedelta, timezone
import pytest
from typing import List, Dict, Any
from httpx import ASGITransport, AsyncClient
from fastapi import Request, HTTPException
from pymongo.errors import ServerSelectionTimeoutError

from api.main import app, get_api_key
from storefront.cache import CacheStore
from storefront.db import DocumentStore
from storefront.governor import ReadGovernor
from storefront.service import DataService

API_KEY = "testapikey"


def _lookup(doc, path):
    """Resolve a dotted field path inside a nested document."""
    cur = doc
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return None
        cur = cur[part]
    return cur


def _matches(doc, q):
    """
    Equality match with MongoDB's array rule: a scalar query value matches
    an array field that contains it.
    """
    for k, v in (q or {}).items():
        docv = _lookup(doc, k)
        if isinstance(docv, list) and not isinstance(v, list):
            if v not in docv:
                return False
        elif docv != v:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: List[Dict[str, Any]]):
        self._docs = list(docs)

    async def to_list(self, length=None):
        """Return copies of the matched documents, at most `length` of them."""
        docs = self._docs if length is None else self._docs[:length]
        return [dict(d) for d in docs]


class FakeCollection:
    """
    In-memory stand-in for the subset of Motor's collection API used by
    DocumentStore. Every call counts as one backend operation on the owning
    FakeDB and fails with ServerSelectionTimeoutError while FakeDB.fail is set.
    """

    def __init__(self, owner, docs=None):
        self.owner = owner
        self.docs = [dict(d) for d in (docs or [])]

    def _touch(self):
        self.owner.calls += 1
        if self.owner.fail:
            raise ServerSelectionTimeoutError("connection refused")

    async def find_one(self, q):
        self._touch()
        for d in self.docs:
            if _matches(d, q):
                return dict(d)
        return None

    def find(self, q=None):
        self._touch()
        return FakeCursor([d for d in self.docs if _matches(d, q)])

    async def update_one(self, q, u, upsert=False):
        """Apply top-level $set fields to the first match, inserting on upsert."""
        self._touch()

        class R:
            matched_count = 0

        for d in self.docs:
            if _matches(d, q):
                d.update(u.get("$set", {}))
                R.matched_count = 1
                return R()
        if upsert:
            doc = dict(q)
            doc.update(u.get("$set", {}))
            self.docs.append(doc)
        return R()

    async def replace_one(self, q, doc, upsert=False):
        self._touch()
        for i, d in enumerate(self.docs):
            if _matches(d, q):
                self.docs[i] = dict(doc)
                return
        if upsert:
            self.docs.append(dict(doc))

    async def delete_one(self, q):
        self._touch()

        class R:
            deleted_count = 0

        for i, d in enumerate(self.docs):
            if _matches(d, q):
                del self.docs[i]
                R.deleted_count = 1
                break
        return R()


class FakeDB:
    def __init__(self, collections=None):
        self.calls = 0
        self.fail = False
        self._collections = {}
        for name, docs in (collections or {}).items():
            self._collections[name] = FakeCollection(self, docs)

    def __getitem__(self, name):
        if name not in self._collections:
            self._collections[name] = FakeCollection(self)
        return self._collections[name]


class FakeClock:
    """Deterministic clock; call it for the current time, advance() to move it."""

    def __init__(self, now=None):
        self.now = now or datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def sample_users():
    """
    Business documents covering each storage shape.

    - u1 "Acme": slug acme-2, previously acme; items in the subcollection
    - u2 "Legacy Bakery": items embedded on the document (legacy shape)
    - u3: signed up but never finished onboarding (no companyData)
    - u4 "Bike Shop": no items at all
    """
    return [
        {
            "_id": "u1",
            "companyData": {
                "name": "Acme",
                "town": "Umeå",
                "description": "Bread and pastries",
                "swishNumber": "1234567890",
                "instagram": "acme_bakes",
                "owners": ["Anna", "Erik"],
                "slug": "acme-2",
            },
            "oldSlugs": ["acme"],
        },
        {
            "_id": "u2",
            "companyData": {
                "name": "Legacy Bakery",
                "town": "Luleå",
                "owners": ["Greta"],
                "slug": "legacy-bakery",
            },
            "products": [
                {"name": "Cake", "description": "Chocolate", "price": 50, "type": "product"},
                {
                    "id": "old-1",
                    "name": "Catering",
                    "description": "Per person",
                    "price": 500,
                    "type": "service",
                    "createdAt": "2024-05-01T10:00:00Z",
                    "updatedAt": "2024-05-02T10:00:00Z",
                },
            ],
        },
        {"_id": "u3", "email": "new@example.com"},
        {
            "_id": "u4",
            "companyData": {
                "name": "Bike Shop",
                "town": "Kiruna",
                "owners": ["Olle"],
                "slug": "bike-shop",
            },
        },
    ]


@pytest.fixture
def sample_products():
    return [
        {
            "_id": "u1/p1",
            "parent_id": "u1",
            "id": "p1",
            "name": "Bread",
            "description": "Sourdough",
            "price": 30,
            "type": "product",
            "createdAt": T0,
            "updatedAt": T0,
        },
        {
            # stored under a different key than its own id field
            "_id": "u1/k2",
            "parent_id": "u1",
            "id": "p2",
            "name": "Baking class",
            "description": "Two hours",
            "price": 250,
            "type": "service",
            "createdAt": T0,
            "updatedAt": T0,
        },
    ]


@pytest.fixture
def fake_db(sample_users, sample_products):
    return FakeDB(
        {
            "users": sample_users,
            "users.products": sample_products,
        }
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(fake_db):
    return DocumentStore(fake_db)


@pytest.fixture
def make_service(store, clock, tmp_path):
    """
    Factory for a DataService wired to the fake DB and clock.

    Defaults: no throttle, generous daily limit, 10 minute freshness and
    capacity 100. Override with max_daily_reads, min_read_interval,
    capacity, freshness.
    """

    def _make(
        max_daily_reads=1000,
        min_read_interval=timedelta(0),
        capacity=100,
        freshness=timedelta(minutes=10),
    ):
        cache = CacheStore(capacity=capacity, freshness=freshness, clock=clock)
        governor = ReadGovernor(
            max_daily_reads=max_daily_reads,
            min_read_interval=min_read_interval,
            clock=clock,
        )
        return DataService(
            store=store,
            cache=cache,
            governor=governor,
            clock=clock,
            static_dir=str(tmp_path),
        )

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
async def client(monkeypatch, service):
    """
    Async test client with the DataService singleton replaced by the fake
    wired service and the API key dependency accepting only "testapikey".
    """
    monkeypatch.setattr("api.main.get_data_service", lambda: service)

    async def fake_get_api_key(request: Request):
        key = request.headers.get("x-api-key") or request.headers.get("X-API-Key")
        if key != API_KEY:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return key

    app.dependency_overrides[get_api_key] = fake_get_api_key

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
