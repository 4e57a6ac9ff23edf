"""
Tests du calendrier sur SQLite : fenêtre de chevauchement, liens vers les
cours et droits de modification.
"""

import uuid
from datetime import datetime

import pytest
from pydantic import ValidationError as SchemaValidationError

from coursedesk.errors import ForbiddenError, NotFoundError, ValidationError
from coursedesk.schemas.calendar import EventCreate, EventUpdate
from coursedesk.services import calendar_service
from factories import create_course, create_teacher, create_user


@pytest.fixture
def admin(db_session):
    return create_user(db_session, "admin")


@pytest.fixture
def prof(db_session):
    return create_user(db_session, "teacher")


def add_event(db, actor, start, end, title="Événement", type="event", course_ids=()):
    return calendar_service.create_event(db, actor, EventCreate(
        title=title, start_at=start, end_at=end, type=type, course_ids=list(course_ids),
    ))


# --- Validation des schémas ---

def test_event_fin_avant_debut_rejete():
    with pytest.raises(SchemaValidationError):
        EventCreate(title="X", start_at="2026-10-02T10:00:00", end_at="2026-10-01T10:00:00", type="exam")


def test_event_type_inconnu_rejete():
    with pytest.raises(SchemaValidationError):
        EventCreate(title="X", start_at="2026-10-01T10:00:00", end_at="2026-10-01T12:00:00", type="party")


def test_event_couleur_invalide_rejetee():
    with pytest.raises(SchemaValidationError):
        EventCreate(title="X", start_at="2026-10-01T10:00:00", end_at="2026-10-01T12:00:00",
                    type="exam", color="rouge")


def test_event_fuseau_converti_en_utc():
    event = EventCreate(title="X", start_at="2026-10-01T10:00:00+02:00",
                        end_at="2026-10-01T12:00:00+02:00", type="exam")
    assert event.start_at == datetime(2026, 10, 1, 8, 0)
    assert event.start_at.tzinfo is None


# ============================================================
# list_events
# ============================================================

def test_list_events_fenetre_de_chevauchement(db_session, admin):
    add_event(db_session, admin, datetime(2026, 9, 28), datetime(2026, 10, 2), title="Commence avant")
    add_event(db_session, admin, datetime(2026, 10, 5), datetime(2026, 10, 6), title="Dedans")
    add_event(db_session, admin, datetime(2026, 10, 30), datetime(2026, 11, 3), title="Finit après")
    add_event(db_session, admin, datetime(2026, 9, 1), datetime(2026, 12, 1), title="Englobe")
    add_event(db_session, admin, datetime(2026, 11, 10), datetime(2026, 11, 11), title="Hors fenêtre")

    events = calendar_service.list_events(db_session, datetime(2026, 10, 1), datetime(2026, 10, 31))

    assert [e.title for e in events] == ["Englobe", "Commence avant", "Dedans", "Finit après"]


def test_list_events_filtre_type_et_cours(db_session, admin):
    teacher = create_teacher(db_session)
    course = create_course(db_session, teacher.id)
    add_event(db_session, admin, datetime(2026, 10, 1), datetime(2026, 10, 1, 2), title="Examen",
              type="exam", course_ids=[course.id])
    add_event(db_session, admin, datetime(2026, 10, 2), datetime(2026, 10, 2, 2), title="Réunion", type="meeting")

    assert [e.title for e in calendar_service.list_events(db_session, event_type="exam")] == ["Examen"]
    assert [e.title for e in calendar_service.list_course_events(db_session, course.id)] == ["Examen"]


def test_list_course_events_cours_introuvable(db_session):
    with pytest.raises(NotFoundError):
        calendar_service.list_course_events(db_session, uuid.uuid4())


# ============================================================
# create / update / delete
# ============================================================

def test_create_event_cours_lie_introuvable(db_session, admin):
    with pytest.raises(ValidationError):
        add_event(db_session, admin, datetime(2026, 10, 1), datetime(2026, 10, 2), course_ids=[uuid.uuid4()])


def test_create_event_eleve_interdit(db_session):
    student = create_user(db_session, "student")
    with pytest.raises(ForbiddenError):
        add_event(db_session, student, datetime(2026, 10, 1), datetime(2026, 10, 2))


def test_update_event_par_le_createur(db_session, prof):
    event = add_event(db_session, prof, datetime(2026, 10, 1), datetime(2026, 10, 2))

    result = calendar_service.update_event(db_session, prof, event.id, EventUpdate(title="Renommé", color="#ff0000"))

    assert result.title == "Renommé"
    assert result.color == "#ff0000"


def test_update_event_par_un_autre_enseignant_interdit(db_session, prof):
    event = add_event(db_session, prof, datetime(2026, 10, 1), datetime(2026, 10, 2))
    other = create_user(db_session, "teacher")

    with pytest.raises(ForbiddenError):
        calendar_service.update_event(db_session, other, event.id, EventUpdate(title="Piraté"))


def test_update_event_dates_incoherentes(db_session, admin):
    event = add_event(db_session, admin, datetime(2026, 10, 1), datetime(2026, 10, 2))
    with pytest.raises(ValidationError):
        calendar_service.update_event(db_session, admin, event.id, EventUpdate(start_at=datetime(2026, 10, 5)))


@pytest.mark.parametrize("field", ["title", "start_at", "end_at", "type", "all_day", "color"])
def test_update_event_champ_obligatoire_a_null_rejete(field):
    with pytest.raises(SchemaValidationError):
        EventUpdate.model_validate({field: None})


def test_update_event_description_et_recurrence_effacables(db_session, prof):
    event = calendar_service.create_event(db_session, prof, EventCreate(
        title="Cours", description="Salle 12", start_at=datetime(2026, 10, 1, 9), end_at=datetime(2026, 10, 1, 12),
        type="class", recurrence={"frequency": "weekly"},
    ))

    result = calendar_service.update_event(db_session, prof, event.id, EventUpdate.model_validate(
        {"description": None, "recurrence": None},
    ))

    assert result.description is None
    assert result.recurrence is None
    assert result.title == "Cours"


def test_update_event_remplace_les_cours(db_session, admin):
    teacher = create_teacher(db_session)
    first = create_course(db_session, teacher.id, name="Algèbre")
    second = create_course(db_session, teacher.id, name="Physique")
    event = add_event(db_session, admin, datetime(2026, 10, 1), datetime(2026, 10, 2), course_ids=[first.id])

    result = calendar_service.update_event(db_session, admin, event.id, EventUpdate(course_ids=[second.id]))

    assert result.course_ids == [second.id]


def test_delete_event_admin(db_session, prof, admin):
    event = add_event(db_session, prof, datetime(2026, 10, 1), datetime(2026, 10, 2))

    calendar_service.delete_event(db_session, admin, event.id)

    with pytest.raises(NotFoundError):
        calendar_service.get_event(db_session, event.id)
