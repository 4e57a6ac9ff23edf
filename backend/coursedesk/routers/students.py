"""
Router pour les élèves : création (identité + profil), consultation,
mise à jour, suppression, cours suivis et historique académique.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from coursedesk.database import get_db
from coursedesk.dependencies import get_current_user, require_permission
from coursedesk.models.user import User
from coursedesk.rate_limit import rate_limit
from coursedesk.schemas.common import ApiResponse, Page, ok
from coursedesk.schemas.student import (
    AcademicRecordResponse,
    StudentCourseResponse,
    StudentCreate,
    StudentDetailResponse,
    StudentResponse,
    StudentUpdate,
)
from coursedesk.services import student_service

router = APIRouter(
    prefix="/api/students",
    tags=["Élèves"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.get("", response_model=ApiResponse[Page[StudentResponse]], summary="Lister les élèves")
def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    name: Optional[str] = None,
    enrollment_number: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Liste paginée, triée par nom. Réservée aux administrateurs et enseignants."""
    return ok(student_service.list_students(db, user, page, limit, name, enrollment_number))


@router.post(
    "",
    response_model=ApiResponse[StudentResponse],
    status_code=201,
    summary="Créer un élève",
    dependencies=[Depends(rate_limit("admin"))],
)
def create_student(
    data: StudentCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("student:create")),
):
    """Crée l'identité et le profil élève en une seule transaction."""
    return ok(student_service.create_student(db, data), "Élève créé.")


@router.get("/{student_id}", response_model=ApiResponse[StudentDetailResponse], summary="Détail d'un élève")
def get_student(student_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ok(student_service.get_student(db, user, student_id))


@router.put("/{student_id}", response_model=ApiResponse[StudentResponse], summary="Modifier un élève")
def update_student(
    student_id: uuid.UUID,
    data: StudentUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("student:update")),
):
    """Met à jour les champs fournis. Les champs absents ne sont pas modifiés."""
    return ok(student_service.update_student(db, student_id, data), "Élève mis à jour.")


@router.delete(
    "/{student_id}",
    response_model=ApiResponse[None],
    summary="Supprimer un élève",
    dependencies=[Depends(rate_limit("admin"))],
)
def delete_student(
    student_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("student:delete")),
):
    """
    Supprime le profil et désactive l'identité.
    Refusé tant que l'élève a une inscription active.
    """
    student_service.delete_student(db, student_id)
    return ok(message="Élève supprimé.")


@router.get(
    "/{student_id}/courses",
    response_model=ApiResponse[List[StudentCourseResponse]],
    summary="Cours suivis par un élève",
)
def get_student_courses(
    student_id: uuid.UUID,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(student_service.get_student_courses(db, user, student_id, status))


@router.get(
    "/{student_id}/history",
    response_model=ApiResponse[List[AcademicRecordResponse]],
    summary="Historique académique",
)
def get_student_history(student_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ok(student_service.get_student_history(db, user, student_id))
