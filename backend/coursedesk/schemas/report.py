"""
Schémas Pydantic pour les rapports.
"""

import uuid
from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import BaseModel, field_validator, model_validator

from coursedesk.policy import ROLES
from coursedesk.schemas.common import not_blank

REPORT_KINDS = ("performance", "attendance", "financial", "administrative", "custom")
REPORT_FORMATS = ("json", "csv", "pdf", "excel")
GRANT_KINDS = ("role", "identity")


class AccessGrant(BaseModel):
    grant_kind: str
    value: str

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def grant_valid(self) -> "AccessGrant":
        if self.grant_kind not in GRANT_KINDS:
            raise ValueError("Type d'accès invalide (role ou identity).")
        if self.grant_kind == "role" and self.value not in ROLES:
            raise ValueError(f"Rôle invalide. Valeurs acceptées : {', '.join(ROLES)}.")
        if self.grant_kind == "identity":
            try:
                uuid.UUID(self.value)
            except ValueError:
                raise ValueError("L'identité doit être un UUID.")
        return self


class ReportParams(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    course_ids: List[uuid.UUID] = []
    student_ids: List[uuid.UUID] = []
    teacher_ids: List[uuid.UUID] = []
    filters: dict[str, Any] = {}

    @model_validator(mode="after")
    def dates_ordered(self) -> "ReportParams":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("La date de fin doit être postérieure à la date de début.")
        return self


class ReportCreate(BaseModel):
    title: str
    description: Optional[str] = None
    kind: str
    format: str = "json"
    params: ReportParams = ReportParams()
    access_grants: Optional[List[AccessGrant]] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        return not_blank(v)

    @field_validator("kind")
    @classmethod
    def kind_valid(cls, v: str) -> str:
        if v not in REPORT_KINDS:
            raise ValueError(f"Type de rapport invalide. Valeurs acceptées : {', '.join(REPORT_KINDS)}.")
        return v

    @field_validator("format")
    @classmethod
    def format_valid(cls, v: str) -> str:
        if v not in REPORT_FORMATS:
            raise ValueError(f"Format invalide. Valeurs acceptées : {', '.join(REPORT_FORMATS)}.")
        return v


class ReportUpdate(BaseModel):
    """Seules les métadonnées sont modifiables ; le contenu généré est figé."""
    title: Optional[str] = None
    description: Optional[str] = None
    access_grants: Optional[List[AccessGrant]] = None
    status: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: Optional[str]) -> Optional[str]:
        return not_blank(v)

    @field_validator("status")
    @classmethod
    def only_archive(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v != "archived":
            raise ValueError("Seul le statut 'archived' peut être appliqué manuellement.")
        return v


class ReportResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    kind: str
    format: str
    params: dict[str, Any]
    payload: Optional[dict[str, Any]] = None
    status: str
    error_message: Optional[str] = None
    creator_id: uuid.UUID
    access_grants: List[AccessGrant] = []
    generated_at: datetime
    created_at: Optional[datetime] = None
