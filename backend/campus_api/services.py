"""Business logic services used by HTTP controllers.

Services sit between the controllers and the repositories: they turn
validated request schemas into stored documents (defaults, case
normalisation, reference ids) and resolve path ids. An id that is not a
valid ObjectId is treated the same as an id that matches nothing.
"""

from typing import List, Optional

from bson import ObjectId

from . import repositories, schemas

DEFAULT_FACULTY_NAME = "New Faculty"


def parse_object_id(value: str) -> Optional[ObjectId]:
    """Return `value` as an ObjectId, or None when it is not a valid id."""
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def _changes(payload) -> dict:
    # only fields the client actually sent; explicit nulls are ignored
    return payload.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


class CrudService:
    """Lookup, update and delete by string id; subclasses build documents."""
    repository_class = repositories.CollectionRepository

    def __init__(self, db):
        self.db = db
        self.repo = self.repository_class(db)

    async def list(self) -> List[dict]:
        return await self.repo.list_all()

    async def get(self, doc_id: str) -> Optional[dict]:
        oid = parse_object_id(doc_id)
        if oid is None:
            return None
        return await self.repo.get(oid)

    async def update(self, doc_id: str, payload) -> Optional[dict]:
        oid = parse_object_id(doc_id)
        if oid is None:
            return None
        return await self.repo.update(oid, self._normalise(_changes(payload)))

    async def delete(self, doc_id: str) -> Optional[dict]:
        oid = parse_object_id(doc_id)
        if oid is None:
            return None
        return await self.repo.delete(oid)

    def _normalise(self, fields: dict) -> dict:
        return fields


class FacultyService(CrudService):
    repository_class = repositories.FacultyRepository

    async def create(self, payload: schemas.FacultyIn) -> dict:
        """Create a faculty, filling in name, budget and department defaults."""
        doc = {
            "name": payload.name or DEFAULT_FACULTY_NAME,
            "code": payload.code,
            "dean": payload.dean,
            "budget": payload.budget or 0,
            "numDepartments": payload.num_departments or 0,
            "isActive": payload.is_active,
        }
        return await self.repo.create(self._normalise(doc))

    def _normalise(self, fields: dict) -> dict:
        if fields.get("code"):
            fields["code"] = fields["code"].strip().upper()
        return fields


class StudentService(CrudService):
    repository_class = repositories.StudentRepository

    async def create(self, payload: schemas.StudentIn) -> dict:
        doc = payload.model_dump(by_alias=True)
        return await self.repo.create(self._normalise(doc))

    def _normalise(self, fields: dict) -> dict:
        """Lower-case email, upper-case student number, store references as ObjectIds."""
        if fields.get("email"):
            fields["email"] = fields["email"].strip().lower()
        if fields.get("studentId"):
            fields["studentId"] = fields["studentId"].strip().upper()
        if fields.get("faculty") is not None:
            fields["faculty"] = ObjectId(fields["faculty"])
        if "courses" in fields:
            fields["courses"] = [ObjectId(c) for c in fields["courses"]]
        return fields


class CourseService(CrudService):
    repository_class = repositories.CourseRepository

    async def create(self, payload: schemas.CourseIn) -> dict:
        doc = payload.model_dump(by_alias=True)
        return await self.repo.create(self._normalise(doc))

    def _normalise(self, fields: dict) -> dict:
        if fields.get("code"):
            fields["code"] = fields["code"].strip().upper()
        if fields.get("faculty") is not None:
            fields["faculty"] = ObjectId(fields["faculty"])
        return fields
