"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for
controller handlers and tests. Create schemas carry the required fields;
update schemas make every field optional so PUT only touches what the
client sends.
"""

from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _check_object_id(value):
    if value is not None and not ObjectId.is_valid(value):
        raise ValueError(f"'{value}' is not a valid id")
    return value


class Payload(BaseModel):
    # strip before length checks so blank codes and names are rejected
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class FacultyIn(Payload):
    """Payload for creating a faculty; missing name/budget/departments get defaults."""
    name: Optional[str] = None
    code: str = Field(min_length=1, max_length=16)
    dean: Optional[str] = None
    budget: Optional[float] = Field(default=None, ge=0)
    num_departments: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True


class FacultyUpdate(Payload):
    name: Optional[str] = Field(default=None, min_length=1)
    code: Optional[str] = Field(default=None, min_length=1, max_length=16)
    dean: Optional[str] = None
    budget: Optional[float] = Field(default=None, ge=0)
    num_departments: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class StudentIn(Payload):
    """Payload for enrolling a student."""
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(pattern=EMAIL_PATTERN)
    student_id: str = Field(min_length=1)
    faculty: Optional[str] = None
    courses: List[str] = Field(default_factory=list)
    gpa: Optional[float] = Field(default=None, ge=0, le=4)
    enrollment_year: Optional[int] = Field(default=None, ge=1900, le=2100)
    is_active: bool = True

    @field_validator("faculty")
    @classmethod
    def _faculty_id(cls, value):
        return _check_object_id(value)

    @field_validator("courses")
    @classmethod
    def _course_ids(cls, value):
        for v in value:
            _check_object_id(v)
        return value


class StudentUpdate(Payload):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    student_id: Optional[str] = Field(default=None, min_length=1)
    faculty: Optional[str] = None
    courses: Optional[List[str]] = None
    gpa: Optional[float] = Field(default=None, ge=0, le=4)
    enrollment_year: Optional[int] = Field(default=None, ge=1900, le=2100)
    is_active: Optional[bool] = None

    @field_validator("faculty")
    @classmethod
    def _faculty_id(cls, value):
        return _check_object_id(value)

    @field_validator("courses")
    @classmethod
    def _course_ids(cls, value):
        for v in value or []:
            _check_object_id(v)
        return value


class CourseIn(Payload):
    """Payload for creating a course."""
    name: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=16)
    credits: int = Field(default=3, ge=1, le=30)
    faculty: Optional[str] = None
    instructor: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True

    @field_validator("faculty")
    @classmethod
    def _faculty_id(cls, value):
        return _check_object_id(value)


class CourseUpdate(Payload):
    name: Optional[str] = Field(default=None, min_length=1)
    code: Optional[str] = Field(default=None, min_length=1, max_length=16)
    credits: Optional[int] = Field(default=None, ge=1, le=30)
    faculty: Optional[str] = None
    instructor: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("faculty")
    @classmethod
    def _faculty_id(cls, value):
        return _check_object_id(value)
