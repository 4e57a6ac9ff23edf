"""
Service métier pour les élèves : identité + profil gérés comme une seule entité.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coursedesk.database import transaction
from coursedesk.errors import ConflictError, NotFoundError, ValidationError
from coursedesk.models.course import Course, CourseRosterEntry
from coursedesk.models.student import AcademicRecord, StudentEnrollment, StudentProfile
from coursedesk.models.user import User
from coursedesk.policy import STUDENT, authorize
from coursedesk.schemas.common import make_page
from coursedesk.schemas.student import (
    AcademicRecordResponse,
    StudentCourseResponse,
    StudentCreate,
    StudentDetailResponse,
    StudentResponse,
    StudentUpdate,
)
from coursedesk.services import auth_service, enrollment_service

logger = logging.getLogger(__name__)


def _to_response(profile: StudentProfile, user: User) -> StudentResponse:
    return StudentResponse(
        id=profile.id,
        user_id=user.id,
        full_name=user.full_name,
        email=user.email,
        active=user.active,
        profile_photo=user.profile_photo,
        enrollment_number=profile.enrollment_number,
        address=profile.address,
        phone=profile.phone,
        birth_date=profile.birth_date,
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


def _load(db: Session, student_id: uuid.UUID) -> tuple[StudentProfile, User]:
    profile = db.get(StudentProfile, student_id)
    if profile is None:
        raise NotFoundError("Élève introuvable.")
    return profile, db.get(User, profile.user_id)


def get_profile_for_user(db: Session, user_id: uuid.UUID) -> Optional[StudentProfile]:
    return db.execute(
        select(StudentProfile).where(StudentProfile.user_id == user_id)
    ).scalar_one_or_none()


def _ensure_enrollment_number_available(db: Session, number: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    query = select(StudentProfile.id).where(StudentProfile.enrollment_number == number)
    if exclude_id is not None:
        query = query.where(StudentProfile.id != exclude_id)
    if db.execute(query).scalar() is not None:
        raise ConflictError("Ce numéro de matricule est déjà utilisé.")


def list_students(
    db: Session,
    actor: User,
    page: int = 1,
    limit: int = 10,
    name: Optional[str] = None,
    enrollment_number: Optional[str] = None,
) -> dict:
    """Liste paginée des élèves, filtrable par nom (contient) et matricule."""
    authorize(actor, "student:list")

    query = select(StudentProfile, User).join(User, User.id == StudentProfile.user_id)
    if name:
        query = query.where(User.full_name.ilike(f"%{name}%"))
    if enrollment_number:
        query = query.where(StudentProfile.enrollment_number == enrollment_number)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    rows = db.execute(
        query.order_by(User.full_name).offset((page - 1) * limit).limit(limit)
    ).all()
    return make_page([_to_response(p, u) for p, u in rows], total, page, limit)


def get_student(db: Session, actor: User, student_id: uuid.UUID) -> StudentDetailResponse:
    profile, user = _load(db, student_id)
    authorize(actor, "student:read", {"user_id": user.id},
              "Vous n'avez pas la permission d'accéder à ce profil.")

    base = _to_response(profile, user)
    return StudentDetailResponse(
        **base.model_dump(),
        enrollments=_enrollments(db, profile.id),
        academic_history=_history(db, profile.id),
    )


def create_student(db: Session, data: StudentCreate) -> StudentResponse:
    """
    Crée l'identité (rôle student) et le profil dans une seule transaction.
    Unicité de l'email et du matricule vérifiée au préalable.
    """
    _ensure_enrollment_number_available(db, data.enrollment_number)

    try:
        with transaction(db):
            user = auth_service.create_identity(db, data.full_name, data.email, data.password, STUDENT)
            db.flush()
            profile = StudentProfile(
                user_id=user.id,
                enrollment_number=data.enrollment_number,
                address=data.address.model_dump() if data.address else None,
                phone=data.phone,
                birth_date=data.birth_date,
            )
            db.add(profile)
    except IntegrityError:
        raise ConflictError("Un élève avec cet email ou ce matricule existe déjà.")

    db.refresh(profile)
    db.refresh(user)
    logger.info("Élève créé : %s (matricule %s)", profile.id, profile.enrollment_number)
    return _to_response(profile, user)


def update_student(db: Session, student_id: uuid.UUID, data: StudentUpdate) -> StudentResponse:
    """Répartit la mise à jour entre les champs d'identité et les champs de profil."""
    profile, user = _load(db, student_id)
    update_data = data.model_dump(exclude_unset=True)

    if "email" in update_data and update_data["email"] != user.email:
        auth_service.ensure_email_available(db, update_data["email"], exclude_user_id=user.id)
        user.email = update_data["email"].strip().lower()
    if "full_name" in update_data:
        user.full_name = update_data["full_name"]

    if "enrollment_number" in update_data and update_data["enrollment_number"] != profile.enrollment_number:
        _ensure_enrollment_number_available(db, update_data["enrollment_number"], exclude_id=profile.id)
        profile.enrollment_number = update_data["enrollment_number"]
    for field in ("address", "phone", "birth_date"):
        if field in update_data:
            setattr(profile, field, update_data[field])

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Un élève avec cet email ou ce matricule existe déjà.")
    db.refresh(profile)
    db.refresh(user)
    return _to_response(profile, user)


def delete_student(db: Session, student_id: uuid.UUID) -> None:
    """
    Supprime le profil élève et désactive son identité.
    Bloqué si l'élève a une inscription active ; sinon il est retiré
    de tous les registres de cours où il apparaît.
    """
    profile, user = _load(db, student_id)

    active = db.execute(
        select(func.count()).select_from(StudentEnrollment).where(
            StudentEnrollment.student_id == profile.id,
            StudentEnrollment.status == "active",
        )
    ).scalar() or 0
    if active:
        raise ValidationError(
            "Impossible de supprimer cet élève : il est inscrit à des cours actifs. "
            "Annulez d'abord ses inscriptions."
        )

    with transaction(db):
        course_ids = db.execute(
            select(CourseRosterEntry.course_id).where(CourseRosterEntry.student_id == profile.id)
        ).scalars().all()
        db.execute(delete(CourseRosterEntry).where(CourseRosterEntry.student_id == profile.id))
        db.execute(delete(StudentEnrollment).where(StudentEnrollment.student_id == profile.id))
        db.execute(delete(AcademicRecord).where(AcademicRecord.student_id == profile.id))
        for course_id in course_ids:
            course = db.get(Course, course_id)
            if course is not None:
                enrollment_service.refresh_available_seats(db, course)
        db.delete(profile)
        user.active = False

    logger.info("Élève %s supprimé, identité %s désactivée", student_id, user.id)


def _enrollments(db: Session, profile_id: uuid.UUID, status: Optional[str] = None) -> list[StudentCourseResponse]:
    query = (
        select(StudentEnrollment, Course)
        .join(Course, Course.id == StudentEnrollment.course_id)
        .where(StudentEnrollment.student_id == profile_id)
    )
    if status:
        query = query.where(StudentEnrollment.status == status)
    rows = db.execute(query.order_by(StudentEnrollment.enrolled_at)).all()
    return [
        StudentCourseResponse(
            course_id=course.id,
            course_name=course.name,
            course_status=course.status,
            start_date=course.start_date,
            end_date=course.end_date,
            enrolled_at=enrollment.enrolled_at,
            status=enrollment.status,
        )
        for enrollment, course in rows
    ]


def _history(db: Session, profile_id: uuid.UUID) -> list[AcademicRecordResponse]:
    rows = db.execute(
        select(AcademicRecord, Course.name)
        .outerjoin(Course, Course.id == AcademicRecord.course_id)
        .where(AcademicRecord.student_id == profile_id)
        .order_by(AcademicRecord.recorded_at)
    ).all()
    return [
        AcademicRecordResponse(
            course_id=record.course_id,
            course_name=course_name,
            final_grade=record.final_grade,
            attendance_pct=record.attendance_pct,
            status=record.status,
        )
        for record, course_name in rows
    ]


def get_student_courses(
    db: Session, actor: User, student_id: uuid.UUID, status: Optional[str] = None
) -> list[StudentCourseResponse]:
    profile, user = _load(db, student_id)
    authorize(actor, "student:read", {"user_id": user.id},
              "Vous n'avez pas la permission d'accéder à ces cours.")
    return _enrollments(db, profile.id, status)


def get_student_history(db: Session, actor: User, student_id: uuid.UUID) -> list[AcademicRecordResponse]:
    profile, user = _load(db, student_id)
    authorize(actor, "student:read", {"user_id": user.id},
              "Vous n'avez pas la permission d'accéder à cet historique.")
    return _history(db, profile.id)
