"""
Schémas Pydantic pour les enseignants et leurs disponibilités.
"""

import re
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, field_validator, model_validator

from coursedesk.schemas.auth import MIN_PASSWORD_LENGTH
from coursedesk.schemas.common import not_blank, not_null

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class Education(BaseModel):
    degree: str
    institution: str
    year: Optional[int] = None


class AvailabilitySlot(BaseModel):
    weekday: str
    start_time: str
    end_time: str

    model_config = {"from_attributes": True}

    @field_validator("weekday")
    @classmethod
    def weekday_valid(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in WEEKDAYS:
            raise ValueError(f"Jour invalide. Valeurs acceptées : {', '.join(WEEKDAYS)}.")
        return v

    @field_validator("start_time", "end_time")
    @classmethod
    def time_format(cls, v: str) -> str:
        if not _TIME_RE.match(v):
            raise ValueError("Format d'heure invalide, attendu HH:MM.")
        return v

    @model_validator(mode="after")
    def start_before_end(self) -> "AvailabilitySlot":
        # HH:MM se compare correctement en ordre lexicographique
        if self.start_time >= self.end_time:
            raise ValueError("L'heure de début doit précéder l'heure de fin.")
        return self


class TeacherCreate(BaseModel):
    full_name: str
    email: EmailStr
    password: str
    specialty: str
    education: List[Education] = []
    availability: List[AvailabilitySlot] = []

    @field_validator("full_name", "specialty")
    @classmethod
    def not_empty(cls, v: str) -> str:
        return not_blank(v)

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères.")
        return v


class TeacherUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    specialty: Optional[str] = None
    education: Optional[List[Education]] = None

    @field_validator("full_name", "email", "specialty", mode="before")
    @classmethod
    def not_nullable(cls, v):
        return not_null(v)

    @field_validator("full_name", "specialty")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> Optional[str]:
        return not_blank(v)


class AvailabilityUpdate(BaseModel):
    availability: List[AvailabilitySlot]


class TeacherResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    full_name: str
    email: str
    active: bool
    profile_photo: Optional[str] = None
    specialty: str
    education: List[Education] = []
    availability: List[AvailabilitySlot] = []
    course_ids: List[uuid.UUID] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
