"""
Router pour le calendrier académique.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from coursedesk.database import get_db
from coursedesk.dependencies import get_current_user
from coursedesk.models.user import User
from coursedesk.rate_limit import rate_limit
from coursedesk.schemas.calendar import EventCreate, EventResponse, EventUpdate
from coursedesk.schemas.common import ApiResponse, naive_utc, ok
from coursedesk.services import calendar_service

router = APIRouter(
    prefix="/api/calendar",
    tags=["Calendrier"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.get("", response_model=ApiResponse[List[EventResponse]], summary="Lister les événements")
def list_events(
    start: Optional[datetime] = Query(None, description="Début de la fenêtre"),
    end: Optional[datetime] = Query(None, description="Fin de la fenêtre"),
    type: Optional[str] = None,
    course_id: Optional[uuid.UUID] = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    """Événements qui chevauchent la fenêtre demandée, triés par date de début."""
    return ok(calendar_service.list_events(db, naive_utc(start), naive_utc(end), type, course_id))


@router.get(
    "/course/{course_id}",
    response_model=ApiResponse[List[EventResponse]],
    summary="Événements d'un cours",
)
def list_course_events(course_id: uuid.UUID, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return ok(calendar_service.list_course_events(db, course_id))


@router.post("", response_model=ApiResponse[EventResponse], status_code=201, summary="Créer un événement")
def create_event(data: EventCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Administrateurs et enseignants. Les cours liés doivent exister."""
    return ok(calendar_service.create_event(db, user, data), "Événement créé.")


@router.get("/{event_id}", response_model=ApiResponse[EventResponse], summary="Détail d'un événement")
def get_event(event_id: uuid.UUID, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return ok(calendar_service.get_event(db, event_id))


@router.put("/{event_id}", response_model=ApiResponse[EventResponse], summary="Modifier un événement")
def update_event(
    event_id: uuid.UUID,
    data: EventUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(calendar_service.update_event(db, user, event_id, data), "Événement mis à jour.")


@router.delete("/{event_id}", response_model=ApiResponse[None], summary="Supprimer un événement")
def delete_event(event_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    calendar_service.delete_event(db, user, event_id)
    return ok(message="Événement supprimé.")
