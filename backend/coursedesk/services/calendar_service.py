"""
Service métier pour le calendrier académique.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from coursedesk.database import transaction
from coursedesk.errors import NotFoundError, ValidationError
from coursedesk.models.calendar_event import CalendarEvent, CalendarEventCourse
from coursedesk.models.course import Course
from coursedesk.models.user import User
from coursedesk.policy import authorize
from coursedesk.schemas.calendar import EventCreate, EventResponse, EventUpdate

logger = logging.getLogger(__name__)


def _course_ids_by_event(db: Session, event_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[uuid.UUID]]:
    links = defaultdict(list)
    if not event_ids:
        return links
    rows = db.execute(
        select(CalendarEventCourse.event_id, CalendarEventCourse.course_id)
        .where(CalendarEventCourse.event_id.in_(event_ids))
    ).all()
    for event_id, course_id in rows:
        links[event_id].append(course_id)
    return links


def _to_response(event: CalendarEvent, course_ids: list[uuid.UUID]) -> EventResponse:
    return EventResponse(
        id=event.id,
        title=event.title,
        description=event.description,
        start_at=event.start_at,
        end_at=event.end_at,
        type=event.type,
        course_ids=course_ids,
        all_day=event.all_day,
        color=event.color,
        recurrence=event.recurrence,
        creator_id=event.creator_id,
        created_at=event.created_at,
    )


def _to_responses(db: Session, events: list[CalendarEvent]) -> list[EventResponse]:
    links = _course_ids_by_event(db, [e.id for e in events])
    return [_to_response(e, links.get(e.id, [])) for e in events]


def _ensure_courses_exist(db: Session, course_ids: Iterable[uuid.UUID]) -> None:
    wanted = set(course_ids)
    if not wanted:
        return
    found = set(db.execute(select(Course.id).where(Course.id.in_(wanted))).scalars().all())
    if wanted - found:
        raise ValidationError("Un ou plusieurs cours liés sont introuvables.")


def _load(db: Session, event_id: uuid.UUID) -> CalendarEvent:
    event = db.get(CalendarEvent, event_id)
    if event is None:
        raise NotFoundError("Événement introuvable.")
    return event


def list_events(
    db: Session,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    event_type: Optional[str] = None,
    course_id: Optional[uuid.UUID] = None,
) -> list[EventResponse]:
    """
    Événements qui chevauchent la fenêtre [start, end] : ils y commencent,
    y finissent ou l'englobent. Triés par date de début.
    """
    query = select(CalendarEvent)
    if start is not None:
        query = query.where(CalendarEvent.end_at >= start)
    if end is not None:
        query = query.where(CalendarEvent.start_at <= end)
    if event_type:
        query = query.where(CalendarEvent.type == event_type)
    if course_id:
        query = query.join(CalendarEventCourse, CalendarEventCourse.event_id == CalendarEvent.id).where(
            CalendarEventCourse.course_id == course_id
        )
    events = db.execute(query.order_by(CalendarEvent.start_at)).scalars().all()
    return _to_responses(db, list(events))


def list_course_events(db: Session, course_id: uuid.UUID) -> list[EventResponse]:
    if db.get(Course, course_id) is None:
        raise NotFoundError("Cours introuvable.")
    return list_events(db, course_id=course_id)


def get_event(db: Session, event_id: uuid.UUID) -> EventResponse:
    return _to_responses(db, [_load(db, event_id)])[0]


def create_event(db: Session, actor: User, data: EventCreate) -> EventResponse:
    authorize(actor, "calendar:create")
    _ensure_courses_exist(db, data.course_ids)

    with transaction(db):
        event = CalendarEvent(
            title=data.title,
            description=data.description,
            start_at=data.start_at,
            end_at=data.end_at,
            type=data.type,
            all_day=data.all_day,
            color=data.color,
            recurrence=data.recurrence.model_dump(mode="json") if data.recurrence else None,
            creator_id=actor.id,
        )
        db.add(event)
        db.flush()
        for course_id in set(data.course_ids):
            db.add(CalendarEventCourse(event_id=event.id, course_id=course_id))

    db.refresh(event)
    logger.info("Événement créé : %s (%s)", event.id, event.type)
    return get_event(db, event.id)


def update_event(db: Session, actor: User, event_id: uuid.UUID, data: EventUpdate) -> EventResponse:
    """Réservé à l'administrateur ou au créateur de l'événement."""
    event = _load(db, event_id)
    authorize(actor, "calendar:mutate", {"creator_id": event.creator_id},
              "Vous ne pouvez modifier que les événements que vous avez créés.")
    update_data = data.model_dump(exclude_unset=True)

    start = update_data.get("start_at") or event.start_at
    end = update_data.get("end_at") or event.end_at
    if start > end:
        raise ValidationError("La date de début doit précéder la date de fin.")

    course_ids = update_data.pop("course_ids", None)
    if course_ids is not None:
        _ensure_courses_exist(db, course_ids)

    with transaction(db):
        for field, value in update_data.items():
            if field == "recurrence":
                value = data.recurrence.model_dump(mode="json") if data.recurrence else None
            setattr(event, field, value)
        if course_ids is not None:
            db.execute(delete(CalendarEventCourse).where(CalendarEventCourse.event_id == event.id))
            for course_id in set(course_ids):
                db.add(CalendarEventCourse(event_id=event.id, course_id=course_id))

    return get_event(db, event.id)


def delete_event(db: Session, actor: User, event_id: uuid.UUID) -> None:
    event = _load(db, event_id)
    authorize(actor, "calendar:mutate", {"creator_id": event.creator_id},
              "Vous ne pouvez supprimer que les événements que vous avez créés.")
    with transaction(db):
        db.execute(delete(CalendarEventCourse).where(CalendarEventCourse.event_id == event.id))
        db.delete(event)
    logger.info("Événement %s supprimé", event_id)
