"""
Service métier pour le catalogue de cours.
Les inscriptions elles-mêmes passent par enrollment_service.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from coursedesk.database import transaction
from coursedesk.errors import ConflictError, NotFoundError, ValidationError
from coursedesk.models.calendar_event import CalendarEventCourse
from coursedesk.models.conversation import Conversation
from coursedesk.models.course import Course, CourseMaterial, CourseRosterEntry
from coursedesk.models.student import StudentEnrollment, StudentProfile
from coursedesk.models.teacher import TeacherCourse, TeacherProfile
from coursedesk.models.user import User
from coursedesk.policy import authorize
from coursedesk.schemas.common import make_page
from coursedesk.schemas.course import (
    CourseCreate,
    CourseResponse,
    CourseUpdate,
    MaterialCreate,
    MaterialResponse,
    RosterEntryResponse,
)
from coursedesk.services import enrollment_service

logger = logging.getLogger(__name__)


def to_response(db: Session, course: Course) -> CourseResponse:
    teacher_name = None
    if course.teacher_id is not None:
        teacher_name = db.execute(
            select(User.full_name)
            .join(TeacherProfile, TeacherProfile.user_id == User.id)
            .where(TeacherProfile.id == course.teacher_id)
        ).scalar()
    enrolled = db.execute(
        select(func.count()).select_from(CourseRosterEntry).where(
            CourseRosterEntry.course_id == course.id,
            CourseRosterEntry.status == enrollment_service.ACTIVE,
        )
    ).scalar() or 0
    return CourseResponse(
        id=course.id,
        name=course.name,
        description=course.description,
        teacher_id=course.teacher_id,
        teacher_name=teacher_name,
        total_hours=course.total_hours,
        start_date=course.start_date,
        end_date=course.end_date,
        status=course.status,
        capacity=course.capacity,
        available_seats=course.available_seats,
        enrolled_count=enrolled,
        created_at=course.created_at,
        updated_at=course.updated_at,
    )


def _load(db: Session, course_id: uuid.UUID) -> Course:
    course = db.get(Course, course_id)
    if course is None:
        raise NotFoundError("Cours introuvable.")
    return course


def _teacher_user_id(db: Session, teacher_id: Optional[uuid.UUID]) -> Optional[uuid.UUID]:
    if teacher_id is None:
        return None
    return db.execute(
        select(TeacherProfile.user_id).where(TeacherProfile.id == teacher_id)
    ).scalar()


def list_courses(
    db: Session,
    page: int = 1,
    limit: int = 10,
    name: Optional[str] = None,
    status: Optional[str] = None,
    teacher_id: Optional[uuid.UUID] = None,
) -> dict:
    """Liste paginée des cours, les plus récents d'abord."""
    query = select(Course)
    if name:
        query = query.where(Course.name.ilike(f"%{name}%"))
    if status:
        query = query.where(Course.status == status)
    if teacher_id:
        query = query.where(Course.teacher_id == teacher_id)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    courses = db.execute(
        query.order_by(Course.created_at.desc(), Course.name).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return make_page([to_response(db, c) for c in courses], total, page, limit)


def get_course(db: Session, course_id: uuid.UUID) -> CourseResponse:
    return to_response(db, _load(db, course_id))


def create_course(db: Session, data: CourseCreate) -> CourseResponse:
    """Crée le cours et l'ajoute aux cours dispensés par l'enseignant, dans une seule transaction."""
    if db.get(TeacherProfile, data.teacher_id) is None:
        raise NotFoundError("Enseignant responsable introuvable.")

    with transaction(db):
        course = Course(**data.model_dump(), available_seats=data.capacity)
        db.add(course)
        db.flush()
        db.add(TeacherCourse(teacher_id=data.teacher_id, course_id=course.id))

    db.refresh(course)
    logger.info("Cours créé : %s (%s, %d places)", course.id, course.name, course.capacity)
    return to_response(db, course)


def update_course(db: Session, actor: User, course_id: uuid.UUID, data: CourseUpdate) -> CourseResponse:
    """
    Mise à jour partielle par un administrateur ou l'enseignant responsable.
    Un changement de responsable déplace le cours d'une liste de cours
    dispensés à l'autre dans la même transaction.
    """
    course = _load(db, course_id)
    authorize(actor, "course:update", {"teacher_user_id": _teacher_user_id(db, course.teacher_id)},
              "Vous n'avez pas la permission de modifier ce cours.")
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)

    new_teacher_id = update_data.pop("teacher_id", None)
    if new_teacher_id is not None and new_teacher_id != course.teacher_id:
        if db.get(TeacherProfile, new_teacher_id) is None:
            raise NotFoundError("Nouvel enseignant responsable introuvable.")

    start = update_data.get("start_date", course.start_date)
    end = update_data.get("end_date", course.end_date)
    if end < start:
        raise ValidationError("La date de fin doit être postérieure ou égale à la date de début.")

    try:
        with transaction(db):
            if new_teacher_id is not None and new_teacher_id != course.teacher_id:
                if course.teacher_id is not None:
                    db.execute(delete(TeacherCourse).where(
                        TeacherCourse.teacher_id == course.teacher_id,
                        TeacherCourse.course_id == course.id,
                    ))
                if db.get(TeacherCourse, (new_teacher_id, course.id)) is None:
                    db.add(TeacherCourse(teacher_id=new_teacher_id, course_id=course.id))
                course.teacher_id = new_teacher_id

            for field, value in update_data.items():
                setattr(course, field, value)
            if "capacity" in update_data:
                enrollment_service.refresh_available_seats(db, course)
    except StaleDataError:
        raise ConflictError(enrollment_service.CONCURRENT_UPDATE)

    db.refresh(course)
    return to_response(db, course)


def delete_course(db: Session, course_id: uuid.UUID) -> None:
    """
    Supprime un cours.
    Refusé si le cours est actif et compte des inscriptions actives : il doit
    d'abord être annulé ou terminé. Le cours disparaît aussi des cours
    dispensés de l'enseignant et des inscriptions des élèves.
    """
    course = _load(db, course_id)

    active_count = db.execute(
        select(func.count()).select_from(CourseRosterEntry).where(
            CourseRosterEntry.course_id == course.id,
            CourseRosterEntry.status == enrollment_service.ACTIVE,
        )
    ).scalar() or 0
    if course.status == "active" and active_count:
        raise ValidationError(
            "Impossible de supprimer un cours actif avec des élèves inscrits. "
            "Annulez ou terminez-le d'abord."
        )

    with transaction(db):
        db.execute(delete(TeacherCourse).where(TeacherCourse.course_id == course.id))
        db.execute(delete(StudentEnrollment).where(StudentEnrollment.course_id == course.id))
        db.execute(delete(CourseRosterEntry).where(CourseRosterEntry.course_id == course.id))
        db.execute(delete(CourseMaterial).where(CourseMaterial.course_id == course.id))
        db.execute(delete(CalendarEventCourse).where(CalendarEventCourse.course_id == course.id))
        db.execute(
            update(Conversation)
            .where(Conversation.related_course_id == course.id)
            .values(related_course_id=None)
            .execution_options(synchronize_session=False)
        )
        db.delete(course)

    logger.info("Cours %s supprimé", course_id)


def get_roster(db: Session, actor: User, course_id: uuid.UUID, status: Optional[str] = None) -> list[RosterEntryResponse]:
    course = _load(db, course_id)
    authorize(actor, "course:roster", {"teacher_user_id": _teacher_user_id(db, course.teacher_id)},
              "Vous n'avez pas la permission de consulter les inscrits de ce cours.")

    query = (
        select(CourseRosterEntry, StudentProfile, User)
        .join(StudentProfile, StudentProfile.id == CourseRosterEntry.student_id)
        .join(User, User.id == StudentProfile.user_id)
        .where(CourseRosterEntry.course_id == course.id)
    )
    if status:
        query = query.where(CourseRosterEntry.status == status)
    rows = db.execute(query.order_by(CourseRosterEntry.enrolled_at)).all()
    return [
        RosterEntryResponse(
            student_id=profile.id,
            enrollment_number=profile.enrollment_number,
            full_name=user.full_name,
            email=user.email,
            enrolled_at=entry.enrolled_at,
            status=entry.status,
        )
        for entry, profile, user in rows
    ]


def add_material(db: Session, actor: User, course_id: uuid.UUID, data: MaterialCreate) -> MaterialResponse:
    course = _load(db, course_id)
    authorize(actor, "course:add_material", {"teacher_user_id": _teacher_user_id(db, course.teacher_id)},
              "Vous n'avez pas la permission d'ajouter un support à ce cours.")

    material = CourseMaterial(course_id=course.id, **data.model_dump())
    db.add(material)
    db.commit()
    db.refresh(material)
    return MaterialResponse.model_validate(material)


def list_materials(db: Session, course_id: uuid.UUID) -> list[MaterialResponse]:
    course = _load(db, course_id)
    materials = db.execute(
        select(CourseMaterial).where(CourseMaterial.course_id == course.id).order_by(CourseMaterial.added_at)
    ).scalars().all()
    return [MaterialResponse.model_validate(m) for m in materials]
