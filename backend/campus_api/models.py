"""Stored document shapes.

Each class describes one MongoDB collection as returned by the API. Fields
are snake_case in Python and camelCase on the wire and in storage; ObjectId
values (`_id` and references) are rendered as 24-character hex strings.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

FACULTIES = "faculties"
STUDENTS = "students"
COURSES = "courses"


class Document(BaseModel):
    """Common `_id` and timestamp fields."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(alias="_id")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return str(value)


class Faculty(Document):
    """A faculty grouping departments under a dean."""
    name: str
    code: str
    dean: Optional[str] = None
    budget: float = 0
    num_departments: int = 0
    is_active: bool = True


class Student(Document):
    """An enrolled student.

    `faculty` and `courses` reference documents in the faculties and
    courses collections.
    """
    first_name: str
    last_name: str
    email: str
    student_id: str
    faculty: Optional[str] = None
    courses: List[str] = Field(default_factory=list)
    gpa: Optional[float] = None
    enrollment_year: Optional[int] = None
    is_active: bool = True

    @field_validator("faculty", mode="before")
    @classmethod
    def _stringify_faculty(cls, value):
        return None if value is None else str(value)

    @field_validator("courses", mode="before")
    @classmethod
    def _stringify_courses(cls, value):
        return [str(v) for v in value or []]


class Course(Document):
    """A course offered by a faculty."""
    name: str
    code: str
    credits: int = 3
    faculty: Optional[str] = None
    instructor: Optional[str] = None
    capacity: Optional[int] = None
    is_active: bool = True

    @field_validator("faculty", mode="before")
    @classmethod
    def _stringify_faculty(cls, value):
        return None if value is None else str(value)
