"""
Enveloppe de réponse commune et pagination.
Toutes les routes renvoient {status, data?, message?} ; les erreurs
sont produites par les handlers globaux de main.py.
"""

import math
from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    status: str = "success"
    data: Optional[T] = None
    message: Optional[str] = None


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


def ok(data=None, message: Optional[str] = None) -> ApiResponse:
    return ApiResponse(data=data, message=message)


def make_page(items: list, total: int, page: int, limit: int) -> dict:
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def not_blank(v: Optional[str]) -> Optional[str]:
    """Validation partagée : chaîne non vide, espaces retirés."""
    if v is None:
        return v
    if not v.strip():
        raise ValueError("Le champ ne peut pas être vide.")
    return v.strip()


def not_null(v):
    """Mise à jour partielle : un champ obligatoire peut être omis, pas envoyé à null."""
    if v is None:
        raise ValueError("Le champ ne peut pas être nul.")
    return v


def naive_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Les colonnes DateTime sont stockées en UTC sans fuseau."""
    if v is None or v.tzinfo is None:
        return v
    return v.astimezone(timezone.utc).replace(tzinfo=None)
