"""
Schémas Pydantic pour les élèves.
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, field_validator

from coursedesk.schemas.auth import MIN_PASSWORD_LENGTH
from coursedesk.schemas.common import not_blank, not_null


class Address(BaseModel):
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


class StudentCreate(BaseModel):
    """Création d'un élève : identité + profil en une seule opération (POST /students)."""
    full_name: str
    email: EmailStr
    password: str
    enrollment_number: str
    address: Optional[Address] = None
    phone: Optional[str] = None
    birth_date: Optional[date] = None

    @field_validator("full_name", "enrollment_number")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return not_blank(v)

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères.")
        return v


class StudentUpdate(BaseModel):
    """Mise à jour partielle : champs d'identité et champs de profil (PUT /students/{id})."""
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    enrollment_number: Optional[str] = None
    address: Optional[Address] = None
    phone: Optional[str] = None
    birth_date: Optional[date] = None

    @field_validator("full_name", "email", "enrollment_number", mode="before")
    @classmethod
    def not_nullable(cls, v):
        return not_null(v)

    @field_validator("full_name", "enrollment_number")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> Optional[str]:
        return not_blank(v)


class StudentResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    full_name: str
    email: str
    active: bool
    profile_photo: Optional[str] = None
    enrollment_number: str
    address: Optional[Address] = None
    phone: Optional[str] = None
    birth_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StudentCourseResponse(BaseModel):
    """Inscription d'un élève vue depuis son profil, avec le résumé du cours."""
    course_id: uuid.UUID
    course_name: str
    course_status: str
    start_date: date
    end_date: date
    enrolled_at: datetime
    status: str


class AcademicRecordResponse(BaseModel):
    course_id: Optional[uuid.UUID] = None
    course_name: Optional[str] = None
    final_grade: Optional[float] = None
    attendance_pct: Optional[float] = None
    status: str


class StudentDetailResponse(StudentResponse):
    enrollments: List[StudentCourseResponse] = []
    academic_history: List[AcademicRecordResponse] = []
