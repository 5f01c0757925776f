# storefront/db.py
import asyncio
from contextlib import asynccontextmanager
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from .config import MONGO_DB, MONGO_URI

_client = None
_db = None


def get_client():
    """Initialize and return the MongoDB AsyncIOMotorClient singleton."""
    global _client, _db
    if _client is None:
        _client = AsyncIOMotorClient(MONGO_URI)
        _db = _client[MONGO_DB]
    return _client


def get_db():
    """Return the MongoDB database instance, initializing if needed."""
    global _db
    if _db is None:
        get_client()
    return _db


class BackendFault(Exception):
    """A read or write against the document store failed."""

    def __init__(self, operation, cause):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


@asynccontextmanager
async def _guard(operation):
    try:
        yield
    except (PyMongoError, OSError, asyncio.TimeoutError) as e:
        raise BackendFault(operation, e) from e


def _strip(doc):
    doc = dict(doc)
    doc.pop("_id", None)
    doc.pop("parent_id", None)
    return doc


def _sub_key(parent_id, doc_id):
    return f"{parent_id}/{doc_id}"


class DocumentStore:
    """
    Thin document-store client over a Motor database.

    Exposes the small, metered read surface the storefront core needs
    (get by id, field equality query, subcollection listing) plus the owner
    write operations. Every call is a separate backend round trip; callers
    are responsible for gating reads through the ReadGovernor.

    Subcollections are stored in a collection named ``"<parent>.<name>"``.
    Each child document carries a ``parent_id`` field and an ``_id`` of the
    form ``"<parent_id>/<key>"`` so keys only need to be unique per parent.

    Any PyMongo or transport error is re-raised as BackendFault.
    """

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            self._db = get_db()
        return self._db

    async def get_by_id(self, collection_path, doc_id):
        """Return the document stored under doc_id, or None."""
        async with _guard(f"get {collection_path}/{doc_id}"):
            doc = await self.db[collection_path].find_one({"_id": doc_id})
        return _strip(doc) if doc else None

    async def query_equals(self, collection_path, field_path, value):
        """
        Return (id, document) pairs whose field_path equals value.

        field_path may be dotted (e.g. "companyData.slug"). As with MongoDB
        equality semantics, a query against an array field matches documents
        whose array contains the value. Results keep store order.
        """
        async with _guard(f"query {collection_path}.{field_path}"):
            docs = await self.db[collection_path].find({field_path: value}).to_list(
                length=None
            )
        return [(d["_id"], _strip(d)) for d in docs]

    async def list_collection(self, collection_path):
        async with _guard(f"list {collection_path}"):
            docs = await self.db[collection_path].find({}).to_list(length=None)
        return [(d["_id"], _strip(d)) for d in docs]

    async def list_subcollection(self, collection_path, parent_id, subcollection_name):
        """Return (key, document) pairs stored under parent_id."""
        path = f"{collection_path}.{subcollection_name}"
        async with _guard(f"list {path} of {parent_id}"):
            docs = await self.db[path].find({"parent_id": parent_id}).to_list(
                length=None
            )
        prefix = f"{parent_id}/"
        out = []
        for d in docs:
            key = str(d["_id"])
            if key.startswith(prefix):
                key = key[len(prefix):]
            out.append((key, _strip(d)))
        return out

    async def merge_document(self, collection_path, doc_id, fields):
        """Set fields on a document, creating it if it does not exist."""
        async with _guard(f"merge {collection_path}/{doc_id}"):
            await self.db[collection_path].update_one(
                {"_id": doc_id}, {"$set": fields}, upsert=True
            )

    async def set_subdocument(
        self, collection_path, parent_id, subcollection_name, doc_id, doc
    ):
        path = f"{collection_path}.{subcollection_name}"
        body = dict(doc)
        body["_id"] = _sub_key(parent_id, doc_id)
        body["parent_id"] = parent_id
        async with _guard(f"set {path}/{parent_id}/{doc_id}"):
            await self.db[path].replace_one({"_id": body["_id"]}, body, upsert=True)

    async def delete_subdocument(
        self, collection_path, parent_id, subcollection_name, doc_id
    ):
        """Delete a child document. Returns True if something was removed."""
        path = f"{collection_path}.{subcollection_name}"
        async with _guard(f"delete {path}/{parent_id}/{doc_id}"):
            res = await self.db[path].delete_one({"_id": _sub_key(parent_id, doc_id)})
        return res.deleted_count > 0
