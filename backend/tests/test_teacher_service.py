"""
Tests du service enseignants sur SQLite.
"""

import uuid

import pytest
from pydantic import ValidationError as SchemaValidationError

from coursedesk.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from coursedesk.models.course import Course
from coursedesk.models.teacher import TeacherCourse, TeacherProfile
from coursedesk.models.user import User
from coursedesk.schemas.teacher import AvailabilitySlot, AvailabilityUpdate, TeacherCreate, TeacherUpdate
from coursedesk.services import teacher_service
from factories import PASSWORD, create_course, create_teacher, create_user, make_user


@pytest.fixture
def admin(db_session):
    return create_user(db_session, "admin")


# --- Validation des schémas ---

def test_availability_jour_invalide_rejete():
    with pytest.raises(SchemaValidationError):
        AvailabilitySlot(weekday="lundi", start_time="08:00", end_time="10:00")


def test_availability_heure_mal_formee_rejetee():
    with pytest.raises(SchemaValidationError):
        AvailabilitySlot(weekday="monday", start_time="8h", end_time="10:00")


def test_availability_debut_apres_fin_rejete():
    with pytest.raises(SchemaValidationError):
        AvailabilitySlot(weekday="monday", start_time="14:00", end_time="10:00")


# ============================================================
# create_teacher
# ============================================================

def test_create_teacher_avec_disponibilites(db_session, admin):
    created = teacher_service.create_teacher(db_session, TeacherCreate(
        full_name="Hélène Simon",
        email="helene.simon@ecole.be",
        password=PASSWORD,
        specialty="Chimie",
        availability=[{"weekday": "Monday", "start_time": "08:00", "end_time": "12:00"}],
    ))

    fetched = teacher_service.get_teacher(db_session, admin, created.id)

    assert fetched.user_id == created.user_id
    assert fetched.specialty == "Chimie"
    assert [s.weekday for s in fetched.availability] == ["monday"]
    assert db_session.get(User, created.user_id).role == "teacher"


def test_create_teacher_email_duplique(db_session):
    create_teacher(db_session, email="prof@ecole.be")
    with pytest.raises(ConflictError):
        create_teacher(db_session, email="prof@ecole.be")


# ============================================================
# update_teacher / availability
# ============================================================

def test_update_teacher_par_lui_meme(db_session):
    teacher = create_teacher(db_session)
    actor = make_user("teacher", user_id=teacher.user_id)

    result = teacher_service.update_teacher(db_session, actor, teacher.id, TeacherUpdate(specialty="Physique"))

    assert result.specialty == "Physique"


@pytest.mark.parametrize("field", ["full_name", "email", "specialty"])
def test_update_teacher_champ_obligatoire_a_null_rejete(field):
    with pytest.raises(SchemaValidationError):
        TeacherUpdate.model_validate({field: None})


def test_update_teacher_formation_a_null_videe(db_session):
    teacher = create_teacher(db_session)
    actor = make_user("teacher", user_id=teacher.user_id)

    result = teacher_service.update_teacher(db_session, actor, teacher.id, TeacherUpdate.model_validate({"education": None}))

    assert result.education == []
    assert result.specialty == "Mathématiques"


def test_update_teacher_par_un_collegue_interdit(db_session):
    teacher = create_teacher(db_session)
    with pytest.raises(ForbiddenError):
        teacher_service.update_teacher(db_session, make_user("teacher"), teacher.id, TeacherUpdate(specialty="X"))


def test_set_availability_remplace_les_creneaux(db_session):
    teacher = create_teacher(db_session)
    actor = make_user("teacher", user_id=teacher.user_id)

    teacher_service.set_availability(db_session, actor, teacher.id, AvailabilityUpdate(availability=[
        {"weekday": "tuesday", "start_time": "09:00", "end_time": "11:00"},
        {"weekday": "friday", "start_time": "13:00", "end_time": "15:00"},
    ]))
    slots = teacher_service.get_availability(db_session, actor, teacher.id)

    assert {s.weekday for s in slots} == {"tuesday", "friday"}


def test_get_availability_autre_enseignant_interdit(db_session):
    teacher = create_teacher(db_session)
    with pytest.raises(ForbiddenError):
        teacher_service.get_availability(db_session, make_user("teacher"), teacher.id)


# ============================================================
# list / courses
# ============================================================

def test_list_teachers_reserve_admin(db_session, admin):
    create_teacher(db_session, specialty="Histoire")
    create_teacher(db_session, specialty="Mathématiques")

    page = teacher_service.list_teachers(db_session, admin, specialty="hist")

    assert page["total"] == 1
    with pytest.raises(ForbiddenError):
        teacher_service.list_teachers(db_session, make_user("teacher"))


def test_get_teacher_courses_filtre_statut(db_session, admin):
    teacher = create_teacher(db_session)
    create_course(db_session, teacher.id, name="Algèbre", status="planning")
    create_course(db_session, teacher.id, name="Géométrie", status="open_enrollment")

    result = teacher_service.get_teacher_courses(db_session, admin, teacher.id, "planning")

    assert [c.name for c in result] == ["Algèbre"]


def test_get_teacher_introuvable(db_session, admin):
    with pytest.raises(NotFoundError):
        teacher_service.get_teacher(db_session, admin, uuid.uuid4())


# ============================================================
# delete_teacher
# ============================================================

def test_delete_teacher_avec_cours_ouvert_rejete(db_session):
    teacher = create_teacher(db_session)
    create_course(db_session, teacher.id, status="open_enrollment")

    with pytest.raises(ValidationError):
        teacher_service.delete_teacher(db_session, teacher.id)
    assert db_session.get(TeacherProfile, teacher.id) is not None


def test_delete_teacher_libere_ses_autres_cours(db_session):
    """Les cours terminés perdent leur responsable ; l'identité est désactivée."""
    teacher = create_teacher(db_session)
    course = create_course(db_session, teacher.id, status="completed")

    teacher_service.delete_teacher(db_session, teacher.id)

    db_session.expire_all()
    assert db_session.get(TeacherProfile, teacher.id) is None
    assert db_session.get(Course, course.id).teacher_id is None
    assert db_session.get(TeacherCourse, (teacher.id, course.id)) is None
    assert db_session.get(User, teacher.user_id).active is False
