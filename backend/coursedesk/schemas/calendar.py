"""
Schémas Pydantic pour le calendrier académique.
"""

import re
import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from coursedesk.schemas.common import naive_utc, not_blank, not_null

EVENT_TYPES = ("class", "exam", "holiday", "event", "meeting", "other")
FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
DEFAULT_COLOR = "#3788d8"
_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")


class Recurrence(BaseModel):
    frequency: str
    interval: int = Field(default=1, ge=1)
    weekdays: List[int] = []  # 0 = dimanche … 6 = samedi
    until: Optional[date] = None

    @field_validator("frequency")
    @classmethod
    def frequency_valid(cls, v: str) -> str:
        if v not in FREQUENCIES:
            raise ValueError(f"Fréquence invalide. Valeurs acceptées : {', '.join(FREQUENCIES)}.")
        return v

    @field_validator("weekdays")
    @classmethod
    def weekdays_valid(cls, v: List[int]) -> List[int]:
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("Les jours de la semaine vont de 0 à 6.")
        return sorted(set(v))


def _check_type(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in EVENT_TYPES:
        raise ValueError(f"Type d'événement invalide. Valeurs acceptées : {', '.join(EVENT_TYPES)}.")
    return v


def _check_color(v: Optional[str]) -> Optional[str]:
    if v is not None and not _COLOR_RE.match(v):
        raise ValueError("Couleur invalide, attendu #RRGGBB.")
    return v


class EventCreate(BaseModel):
    title: str
    description: Optional[str] = None
    start_at: datetime
    end_at: datetime
    type: str
    course_ids: List[uuid.UUID] = []
    all_day: bool = False
    color: str = DEFAULT_COLOR
    recurrence: Optional[Recurrence] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        return not_blank(v)

    @field_validator("start_at", "end_at")
    @classmethod
    def to_utc(cls, v: datetime) -> datetime:
        return naive_utc(v)

    @field_validator("type")
    @classmethod
    def type_valid(cls, v: str) -> str:
        return _check_type(v)

    @field_validator("color")
    @classmethod
    def color_valid(cls, v: str) -> str:
        return _check_color(v)

    @model_validator(mode="after")
    def start_before_end(self) -> "EventCreate":
        if self.start_at > self.end_at:
            raise ValueError("La date de début doit précéder la date de fin.")
        return self


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    type: Optional[str] = None
    course_ids: Optional[List[uuid.UUID]] = None
    all_day: Optional[bool] = None
    color: Optional[str] = None
    recurrence: Optional[Recurrence] = None

    @field_validator("title", "start_at", "end_at", "type", "all_day", "color", mode="before")
    @classmethod
    def not_nullable(cls, v):
        return not_null(v)

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: Optional[str]) -> Optional[str]:
        return not_blank(v)

    @field_validator("start_at", "end_at")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return naive_utc(v)

    @field_validator("type")
    @classmethod
    def type_valid(cls, v: Optional[str]) -> Optional[str]:
        return _check_type(v)

    @field_validator("color")
    @classmethod
    def color_valid(cls, v: Optional[str]) -> Optional[str]:
        return _check_color(v)


class EventResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    start_at: datetime
    end_at: datetime
    type: str
    course_ids: List[uuid.UUID] = []
    all_day: bool
    color: str
    recurrence: Optional[Recurrence] = None
    creator_id: uuid.UUID
    created_at: Optional[datetime] = None
