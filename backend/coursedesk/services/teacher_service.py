"""
Service métier pour les enseignants : identité + profil, disponibilités
et cours dispensés.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coursedesk.database import transaction
from coursedesk.errors import ConflictError, NotFoundError, ValidationError
from coursedesk.models.course import Course
from coursedesk.models.teacher import TeacherAvailability, TeacherCourse, TeacherProfile
from coursedesk.models.user import User
from coursedesk.policy import TEACHER, authorize
from coursedesk.schemas.common import make_page
from coursedesk.schemas.course import CourseResponse
from coursedesk.schemas.teacher import (
    AvailabilitySlot,
    AvailabilityUpdate,
    TeacherCreate,
    TeacherResponse,
    TeacherUpdate,
)
from coursedesk.services import auth_service, course_service

logger = logging.getLogger(__name__)

# Un enseignant responsable d'un cours dans l'un de ces statuts ne peut pas être supprimé
BLOCKING_COURSE_STATUSES = ("active", "open_enrollment")


def _availability(db: Session, teacher_id: uuid.UUID) -> list[AvailabilitySlot]:
    slots = db.execute(
        select(TeacherAvailability).where(TeacherAvailability.teacher_id == teacher_id)
    ).scalars().all()
    return [AvailabilitySlot.model_validate(s) for s in slots]


def _to_response(db: Session, profile: TeacherProfile, user: User) -> TeacherResponse:
    course_ids = db.execute(
        select(TeacherCourse.course_id).where(TeacherCourse.teacher_id == profile.id)
    ).scalars().all()
    return TeacherResponse(
        id=profile.id,
        user_id=user.id,
        full_name=user.full_name,
        email=user.email,
        active=user.active,
        profile_photo=user.profile_photo,
        specialty=profile.specialty,
        education=profile.education or [],
        availability=_availability(db, profile.id),
        course_ids=list(course_ids),
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


def _load(db: Session, teacher_id: uuid.UUID) -> tuple[TeacherProfile, User]:
    profile = db.get(TeacherProfile, teacher_id)
    if profile is None:
        raise NotFoundError("Enseignant introuvable.")
    return profile, db.get(User, profile.user_id)


def get_profile_for_user(db: Session, user_id: uuid.UUID) -> Optional[TeacherProfile]:
    return db.execute(
        select(TeacherProfile).where(TeacherProfile.user_id == user_id)
    ).scalar_one_or_none()


def list_teachers(
    db: Session,
    actor: User,
    page: int = 1,
    limit: int = 10,
    name: Optional[str] = None,
    specialty: Optional[str] = None,
) -> dict:
    authorize(actor, "teacher:list")

    query = select(TeacherProfile, User).join(User, User.id == TeacherProfile.user_id)
    if name:
        query = query.where(User.full_name.ilike(f"%{name}%"))
    if specialty:
        query = query.where(TeacherProfile.specialty.ilike(f"%{specialty}%"))

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    rows = db.execute(
        query.order_by(User.full_name).offset((page - 1) * limit).limit(limit)
    ).all()
    return make_page([_to_response(db, p, u) for p, u in rows], total, page, limit)


def get_teacher(db: Session, actor: User, teacher_id: uuid.UUID) -> TeacherResponse:
    profile, user = _load(db, teacher_id)
    authorize(actor, "teacher:read")
    return _to_response(db, profile, user)


def create_teacher(db: Session, data: TeacherCreate) -> TeacherResponse:
    """Crée l'identité (rôle teacher), le profil et ses disponibilités dans une seule transaction."""
    try:
        with transaction(db):
            user = auth_service.create_identity(db, data.full_name, data.email, data.password, TEACHER)
            db.flush()
            profile = TeacherProfile(
                user_id=user.id,
                specialty=data.specialty,
                education=[e.model_dump() for e in data.education],
            )
            db.add(profile)
            db.flush()
            for slot in data.availability:
                db.add(TeacherAvailability(teacher_id=profile.id, **slot.model_dump()))
    except IntegrityError:
        raise ConflictError("Cet email est déjà utilisé.")

    db.refresh(profile)
    db.refresh(user)
    logger.info("Enseignant créé : %s (%s)", profile.id, profile.specialty)
    return _to_response(db, profile, user)


def update_teacher(db: Session, actor: User, teacher_id: uuid.UUID, data: TeacherUpdate) -> TeacherResponse:
    profile, user = _load(db, teacher_id)
    authorize(actor, "teacher:update", {"user_id": user.id},
              "Vous ne pouvez modifier que votre propre profil.")
    update_data = data.model_dump(exclude_unset=True)

    if "email" in update_data and update_data["email"] != user.email:
        auth_service.ensure_email_available(db, update_data["email"], exclude_user_id=user.id)
        user.email = update_data["email"].strip().lower()
    if "full_name" in update_data:
        user.full_name = update_data["full_name"]
    if "specialty" in update_data:
        profile.specialty = update_data["specialty"]
    if "education" in update_data:
        profile.education = update_data["education"] or []

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Cet email est déjà utilisé.")
    db.refresh(profile)
    db.refresh(user)
    return _to_response(db, profile, user)


def delete_teacher(db: Session, teacher_id: uuid.UUID) -> None:
    """
    Supprime le profil enseignant et désactive son identité.
    Bloqué si l'enseignant est responsable d'un cours actif ou ouvert aux
    inscriptions ; ses autres cours perdent simplement leur responsable.
    """
    profile, user = _load(db, teacher_id)

    blocking = db.execute(
        select(func.count()).select_from(Course).where(
            Course.teacher_id == profile.id,
            Course.status.in_(BLOCKING_COURSE_STATUSES),
        )
    ).scalar() or 0
    if blocking:
        raise ValidationError(
            "Impossible de supprimer cet enseignant : il est responsable de cours actifs "
            "ou ouverts aux inscriptions. Réassignez-les d'abord."
        )

    with transaction(db):
        db.execute(
            update(Course)
            .where(Course.teacher_id == profile.id)
            .values(teacher_id=None, version=Course.version + 1)
            .execution_options(synchronize_session=False)
        )
        db.execute(delete(TeacherCourse).where(TeacherCourse.teacher_id == profile.id))
        db.execute(delete(TeacherAvailability).where(TeacherAvailability.teacher_id == profile.id))
        db.delete(profile)
        user.active = False

    logger.info("Enseignant %s supprimé, identité %s désactivée", teacher_id, user.id)


def get_teacher_courses(
    db: Session, actor: User, teacher_id: uuid.UUID, status: Optional[str] = None
) -> list[CourseResponse]:
    profile, _ = _load(db, teacher_id)
    authorize(actor, "teacher:read")
    query = (
        select(Course)
        .join(TeacherCourse, TeacherCourse.course_id == Course.id)
        .where(TeacherCourse.teacher_id == profile.id)
    )
    if status:
        query = query.where(Course.status == status)
    courses = db.execute(query.order_by(Course.start_date)).scalars().all()
    return [course_service.to_response(db, c) for c in courses]


def get_availability(db: Session, actor: User, teacher_id: uuid.UUID) -> list[AvailabilitySlot]:
    profile, user = _load(db, teacher_id)
    authorize(actor, "teacher:availability", {"user_id": user.id},
              "Vous ne pouvez consulter que vos propres disponibilités.")
    return _availability(db, profile.id)


def set_availability(db: Session, actor: User, teacher_id: uuid.UUID, data: AvailabilityUpdate) -> list[AvailabilitySlot]:
    """Remplace l'ensemble des créneaux de disponibilité de l'enseignant."""
    profile, user = _load(db, teacher_id)
    authorize(actor, "teacher:availability", {"user_id": user.id},
              "Vous ne pouvez modifier que vos propres disponibilités.")

    with transaction(db):
        db.execute(delete(TeacherAvailability).where(TeacherAvailability.teacher_id == profile.id))
        for slot in data.availability:
            db.add(TeacherAvailability(teacher_id=profile.id, **slot.model_dump()))

    return _availability(db, profile.id)
