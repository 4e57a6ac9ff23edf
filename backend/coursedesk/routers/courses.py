"""
Router pour le catalogue de cours, les inscriptions et les supports.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from coursedesk.database import get_db
from coursedesk.dependencies import get_current_user, get_notification_hub, require_permission
from coursedesk.models.user import User
from coursedesk.notifications import NotificationHub
from coursedesk.rate_limit import rate_limit
from coursedesk.schemas.common import ApiResponse, Page, ok
from coursedesk.schemas.course import (
    CourseCreate,
    CourseResponse,
    CourseUpdate,
    EnrollmentRequest,
    EnrollmentResult,
    MaterialCreate,
    MaterialResponse,
    RosterEntryResponse,
)
from coursedesk.services import course_service, enrollment_service

router = APIRouter(
    prefix="/api/courses",
    tags=["Cours"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.get("", response_model=ApiResponse[Page[CourseResponse]], summary="Lister les cours")
def list_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    name: Optional[str] = None,
    status: Optional[str] = None,
    teacher_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    """Liste paginée, les cours les plus récents d'abord."""
    return ok(course_service.list_courses(db, page, limit, name, status, teacher_id))


@router.post(
    "",
    response_model=ApiResponse[CourseResponse],
    status_code=201,
    summary="Créer un cours",
    dependencies=[Depends(rate_limit("admin"))],
)
def create_course(
    data: CourseCreate,
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("course:create")),
):
    return ok(course_service.create_course(db, data), "Cours créé.")


@router.get("/{course_id}", response_model=ApiResponse[CourseResponse], summary="Détail d'un cours")
def get_course(course_id: uuid.UUID, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return ok(course_service.get_course(db, course_id))


@router.put("/{course_id}", response_model=ApiResponse[CourseResponse], summary="Modifier un cours")
def update_course(
    course_id: uuid.UUID,
    data: CourseUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Administrateur ou enseignant responsable. Un changement de capacité recalcule les places."""
    return ok(course_service.update_course(db, user, course_id, data), "Cours mis à jour.")


@router.delete(
    "/{course_id}",
    response_model=ApiResponse[None],
    summary="Supprimer un cours",
    dependencies=[Depends(rate_limit("admin"))],
)
def delete_course(
    course_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("course:delete")),
):
    """Refusé si le cours est actif et compte des inscriptions actives."""
    course_service.delete_course(db, course_id)
    return ok(message="Cours supprimé.")


# --- Inscriptions ---

@router.post("/{course_id}/enroll", response_model=ApiResponse[EnrollmentResult], summary="S'inscrire à un cours")
def enroll(
    course_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    data: Optional[EnrollmentRequest] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """
    Un élève s'inscrit lui-même (student_id facultatif) ; un administrateur
    doit préciser l'élève. L'élève est notifié après la réponse.
    """
    result = enrollment_service.enroll(db, course_id, user, data.student_id if data else None)
    background_tasks.add_task(
        hub.send_to_user,
        result.student_user_id,
        "notification",
        {"type": "enrolled", "course_id": result.course_id, "available_seats": result.available_seats},
    )
    return ok(result, "Inscription réalisée.")


@router.post("/{course_id}/withdraw", response_model=ApiResponse[EnrollmentResult], summary="Annuler une inscription")
def withdraw(
    course_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    data: Optional[EnrollmentRequest] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    hub: NotificationHub = Depends(get_notification_hub),
):
    result = enrollment_service.withdraw(db, course_id, user, data.student_id if data else None)
    background_tasks.add_task(
        hub.send_to_user,
        result.student_user_id,
        "notification",
        {"type": "withdrawn", "course_id": result.course_id, "available_seats": result.available_seats},
    )
    return ok(result, "Inscription annulée.")


@router.get(
    "/{course_id}/students",
    response_model=ApiResponse[List[RosterEntryResponse]],
    summary="Élèves inscrits",
)
def get_roster(
    course_id: uuid.UUID,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(course_service.get_roster(db, user, course_id, status))


# --- Supports de cours ---

@router.get(
    "/{course_id}/materials",
    response_model=ApiResponse[List[MaterialResponse]],
    summary="Supports d'un cours",
)
def list_materials(course_id: uuid.UUID, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return ok(course_service.list_materials(db, course_id))


@router.post(
    "/{course_id}/materials",
    response_model=ApiResponse[MaterialResponse],
    status_code=201,
    summary="Ajouter un support",
)
def add_material(
    course_id: uuid.UUID,
    data: MaterialCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(course_service.add_material(db, user, course_id, data), "Support ajouté.")
