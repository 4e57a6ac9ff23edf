"""
Router pour les enseignants : profils, cours dispensés et disponibilités.
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
from coursedesk.schemas.course import CourseResponse
from coursedesk.schemas.teacher import (
    AvailabilitySlot,
    AvailabilityUpdate,
    TeacherCreate,
    TeacherResponse,
    TeacherUpdate,
)
from coursedesk.services import teacher_service

router = APIRouter(
    prefix="/api/teachers",
    tags=["Enseignants"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.get("", response_model=ApiResponse[Page[TeacherResponse]], summary="Lister les enseignants")
def list_teachers(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    name: Optional[str] = None,
    specialty: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(teacher_service.list_teachers(db, user, page, limit, name, specialty))


@router.post(
    "",
    response_model=ApiResponse[TeacherResponse],
    status_code=201,
    summary="Créer un enseignant",
    dependencies=[Depends(rate_limit("admin"))],
)
def create_teacher(
    data: TeacherCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("teacher:create")),
):
    """Crée l'identité et le profil enseignant, disponibilités comprises."""
    return ok(teacher_service.create_teacher(db, data), "Enseignant créé.")


@router.get("/{teacher_id}", response_model=ApiResponse[TeacherResponse], summary="Détail d'un enseignant")
def get_teacher(teacher_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ok(teacher_service.get_teacher(db, user, teacher_id))


@router.put("/{teacher_id}", response_model=ApiResponse[TeacherResponse], summary="Modifier un enseignant")
def update_teacher(
    teacher_id: uuid.UUID,
    data: TeacherUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Administrateur ou l'enseignant lui-même."""
    return ok(teacher_service.update_teacher(db, user, teacher_id, data), "Enseignant mis à jour.")


@router.delete(
    "/{teacher_id}",
    response_model=ApiResponse[None],
    summary="Supprimer un enseignant",
    dependencies=[Depends(rate_limit("admin"))],
)
def delete_teacher(
    teacher_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("teacher:delete")),
):
    """Refusé tant qu'un de ses cours est actif ou ouvert aux inscriptions."""
    teacher_service.delete_teacher(db, teacher_id)
    return ok(message="Enseignant supprimé.")


@router.get(
    "/{teacher_id}/courses",
    response_model=ApiResponse[List[CourseResponse]],
    summary="Cours dispensés",
)
def get_teacher_courses(
    teacher_id: uuid.UUID,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(teacher_service.get_teacher_courses(db, user, teacher_id, status))


@router.get(
    "/{teacher_id}/availability",
    response_model=ApiResponse[List[AvailabilitySlot]],
    summary="Disponibilités",
)
def get_availability(teacher_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ok(teacher_service.get_availability(db, user, teacher_id))


@router.put(
    "/{teacher_id}/availability",
    response_model=ApiResponse[List[AvailabilitySlot]],
    summary="Remplacer les disponibilités",
)
def set_availability(
    teacher_id: uuid.UUID,
    data: AvailabilityUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(teacher_service.set_availability(db, user, teacher_id, data), "Disponibilités mises à jour.")
