"""
Schémas Pydantic pour le catalogue de cours et les inscriptions.
"""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from coursedesk.schemas.common import not_blank

COURSE_STATUSES = ("planning", "open_enrollment", "active", "completed", "cancelled")
MATERIAL_KINDS = ("document", "video", "link", "other")


def _check_status(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in COURSE_STATUSES:
        raise ValueError(f"Statut invalide. Valeurs acceptées : {', '.join(COURSE_STATUSES)}.")
    return v


class CourseCreate(BaseModel):
    name: str
    description: str
    teacher_id: uuid.UUID
    total_hours: int = Field(gt=0)
    start_date: date
    end_date: date
    status: str = "planning"
    capacity: int = Field(default=30, gt=0)

    @field_validator("name", "description")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return not_blank(v)

    @field_validator("status")
    @classmethod
    def status_valid(cls, v: str) -> str:
        return _check_status(v)

    @model_validator(mode="after")
    def dates_ordered(self) -> "CourseCreate":
        if self.end_date < self.start_date:
            raise ValueError("La date de fin doit être postérieure ou égale à la date de début.")
        return self


class CourseUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    teacher_id: Optional[uuid.UUID] = None
    total_hours: Optional[int] = Field(default=None, gt=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None
    capacity: Optional[int] = Field(default=None, gt=0)

    @field_validator("name", "description")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> Optional[str]:
        return not_blank(v)

    @field_validator("status")
    @classmethod
    def status_valid(cls, v: Optional[str]) -> Optional[str]:
        return _check_status(v)


class CourseResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    teacher_id: Optional[uuid.UUID] = None
    teacher_name: Optional[str] = None
    total_hours: int
    start_date: date
    end_date: date
    status: str
    capacity: int
    available_seats: int
    enrolled_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RosterEntryResponse(BaseModel):
    student_id: uuid.UUID
    enrollment_number: str
    full_name: str
    email: str
    enrolled_at: datetime
    status: str


class MaterialCreate(BaseModel):
    title: str
    description: Optional[str] = None
    kind: str = "document"
    url: str

    @field_validator("title", "url")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return not_blank(v)

    @field_validator("kind")
    @classmethod
    def kind_valid(cls, v: str) -> str:
        if v not in MATERIAL_KINDS:
            raise ValueError(f"Type de support invalide. Valeurs acceptées : {', '.join(MATERIAL_KINDS)}.")
        return v


class MaterialResponse(BaseModel):
    id: uuid.UUID
    course_id: uuid.UUID
    title: str
    description: Optional[str] = None
    kind: str
    url: str
    added_at: datetime

    model_config = {"from_attributes": True}


class EnrollmentRequest(BaseModel):
    """Un élève peut omettre student_id : son propre profil est alors utilisé."""
    student_id: Optional[uuid.UUID] = None


class EnrollmentResult(BaseModel):
    course_id: uuid.UUID
    student_id: uuid.UUID
    student_user_id: uuid.UUID
    status: str
    enrolled_at: datetime
    available_seats: int
