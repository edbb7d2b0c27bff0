"""Repository classes encapsulating database operations.

Each repository is small and focused on a single collection (faculties,
students, courses). Repositories take a Motor database handle, accept
`ObjectId` keys and return raw documents as dictionaries.
"""

from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from pymongo import ReturnDocument

from . import models


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CollectionRepository:
    """CRUD operations shared by every collection."""
    collection_name: str

    def __init__(self, db):
        self.collection = db[self.collection_name]

    async def list_all(self) -> List[dict]:
        """Return every document in the collection."""
        return await self.collection.find({}).to_list(length=None)

    async def get(self, oid: ObjectId) -> Optional[dict]:
        """Return a document by `_id` or `None` if not found."""
        return await self.collection.find_one({"_id": oid})

    async def create(self, doc: dict) -> dict:
        """Insert a new document stamped with `createdAt`/`updatedAt`."""
        now = _now()
        doc = {**doc, "createdAt": now, "updatedAt": now}
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    async def update(self, oid: ObjectId, fields: dict) -> Optional[dict]:
        """Apply `fields` with `$set` and return the updated document.

        An empty update only bumps `updatedAt`. Returns `None` when no
        document has the given id.
        """
        changes = {**fields, "updatedAt": _now()}
        return await self.collection.find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )

    async def delete(self, oid: ObjectId) -> Optional[dict]:
        """Remove a document and return it, or `None` if it did not exist."""
        return await self.collection.find_one_and_delete({"_id": oid})


class FacultyRepository(CollectionRepository):
    collection_name = models.FACULTIES


class StudentRepository(CollectionRepository):
    collection_name = models.STUDENTS


class CourseRepository(CollectionRepository):
    collection_name = models.COURSES


async def ensure_indexes(db) -> None:
    """Create the unique indexes the collections rely on (idempotent)."""
    await db[models.FACULTIES].create_index("code", unique=True)
    await db[models.STUDENTS].create_index("email", unique=True)
    await db[models.STUDENTS].create_index("studentId", unique=True)
    await db[models.COURSES].create_index("code", unique=True)
