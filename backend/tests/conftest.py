import asyncio
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from campus_api import repositories
from campus_api.database import get_database
from campus_api.main import app


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    async def to_list(self, length=None):
        docs = [dict(d) for d in self._docs]
        return docs if length is None else docs[:length]


class FakeCollection:
    """In-memory stand-in for the handful of Motor collection calls the repositories make."""

    def __init__(self):
        self.docs = {}
        self.unique = set()

    def _matches(self, doc, query):
        return all(doc.get(k) == v for k, v in query.items())

    def _check_unique(self, fields, exclude=None):
        for key in self.unique:
            if key not in fields:
                continue
            for oid, doc in self.docs.items():
                if oid != exclude and doc.get(key) == fields[key]:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error: {key}",
                        code=11000,
                        details={"keyValue": {key: fields[key]}},
                    )

    async def create_index(self, key, unique=False):
        if unique:
            self.unique.add(key)
        return f"{key}_1"

    async def insert_one(self, doc):
        self._check_unique(doc)
        oid = doc.setdefault("_id", ObjectId())
        self.docs[oid] = dict(doc)
        return SimpleNamespace(inserted_id=oid)

    def find(self, query):
        return FakeCursor([d for d in self.docs.values() if self._matches(d, query)])

    async def find_one(self, query):
        for doc in self.docs.values():
            if self._matches(doc, query):
                return dict(doc)
        return None

    async def find_one_and_update(self, query, update, return_document=ReturnDocument.BEFORE):
        current = await self.find_one(query)
        if current is None:
            return None
        changes = update.get("$set", {})
        self._check_unique(changes, exclude=current["_id"])
        self.docs[current["_id"]].update(changes)
        if return_document == ReturnDocument.AFTER:
            return dict(self.docs[current["_id"]])
        return current

    async def find_one_and_delete(self, query):
        current = await self.find_one(query)
        if current is None:
            return None
        del self.docs[current["_id"]]
        return current


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())


@pytest.fixture
def fake_db():
    db = FakeDatabase()
    asyncio.run(repositories.ensure_indexes(db))
    return db


@pytest.fixture
def client(fake_db):
    """TestClient whose requests see `fake_db` as the live database."""
    app.dependency_overrides[get_database] = lambda: fake_db
    yield TestClient(app)
    app.dependency_overrides.clear()
