"""
Workflow d'inscription et de désinscription des élèves.

Le registre du cours (CourseRosterEntry), la liste miroir de l'élève
(StudentEnrollment) et le nombre de places disponibles sont modifiés dans
une seule transaction : aucun état intermédiaire n'est jamais validé.

Le nombre de places n'est jamais incrémenté ou décrémenté : il est
recalculé à partir du registre (compute_available_seats). La colonne
version de Course fait échouer toute écriture concurrente sur le même
cours, convertie ici en ConflictError.
"""

import logging
import uuid
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from coursedesk.database import transaction, utcnow
from coursedesk.errors import ConflictError, NotFoundError, ValidationError
from coursedesk.models.course import Course, CourseRosterEntry
from coursedesk.models.student import StudentEnrollment, StudentProfile
from coursedesk.models.user import User
from coursedesk.policy import STUDENT, authorize
from coursedesk.schemas.course import EnrollmentResult

logger = logging.getLogger(__name__)

ACTIVE = "active"
WITHDRAWN = "withdrawn"

CONCURRENT_UPDATE = "Le cours a été modifié simultanément, veuillez réessayer."


def compute_available_seats(capacity: int, roster_statuses: Iterable[str]) -> int:
    """Places disponibles = max(0, capacité - inscriptions actives)."""
    active = sum(1 for status in roster_statuses if status == ACTIVE)
    return max(0, capacity - active)


def refresh_available_seats(db: Session, course: Course) -> int:
    """
    Recalcule available_seats depuis le registre en base.
    La colonne est toujours marquée modifiée pour que le flush vérifie la version du cours.
    """
    db.flush()
    statuses = db.execute(
        select(CourseRosterEntry.status).where(CourseRosterEntry.course_id == course.id)
    ).scalars().all()
    course.available_seats = compute_available_seats(course.capacity, statuses)
    flag_modified(course, "available_seats")
    return course.available_seats


def _resolve_student(db: Session, actor: User, student_id: Optional[uuid.UUID]) -> StudentProfile:
    """Sans student_id explicite, un élève agit sur son propre profil."""
    if student_id is None:
        if actor.role != STUDENT:
            raise ValidationError("Le champ student_id est requis.")
        profile = db.execute(
            select(StudentProfile).where(StudentProfile.user_id == actor.id)
        ).scalar_one_or_none()
        if profile is None:
            raise NotFoundError("Profil élève introuvable pour cet utilisateur.")
        return profile

    profile = db.get(StudentProfile, student_id)
    if profile is None:
        raise NotFoundError("Élève introuvable.")
    return profile


def _load_course_for_update(db: Session, course_id: uuid.UUID) -> Course:
    course = db.get(Course, course_id, with_for_update=True, populate_existing=True)
    if course is None:
        raise NotFoundError("Cours introuvable.")
    return course


def _roster_entry(db: Session, course_id: uuid.UUID, student_id: uuid.UUID) -> Optional[CourseRosterEntry]:
    return db.execute(
        select(CourseRosterEntry).where(
            CourseRosterEntry.course_id == course_id,
            CourseRosterEntry.student_id == student_id,
        )
    ).scalar_one_or_none()


def _mirror_student_enrollment(db: Session, student_id: uuid.UUID, course_id: uuid.UUID, enrolled_at: datetime) -> None:
    """Reflète l'inscription dans la liste de l'élève (création ou réactivation)."""
    row = db.execute(
        select(StudentEnrollment).where(
            StudentEnrollment.student_id == student_id,
            StudentEnrollment.course_id == course_id,
        )
    ).scalar_one_or_none()
    if row is None:
        db.add(StudentEnrollment(student_id=student_id, course_id=course_id, enrolled_at=enrolled_at, status=ACTIVE))
    else:
        row.status = ACTIVE
        row.enrolled_at = enrolled_at
    db.flush()


def _mirror_withdrawal(db: Session, student_id: uuid.UUID, course_id: uuid.UUID) -> None:
    row = db.execute(
        select(StudentEnrollment).where(
            StudentEnrollment.student_id == student_id,
            StudentEnrollment.course_id == course_id,
        )
    ).scalar_one_or_none()
    if row is None:
        logger.warning("Inscription miroir absente : élève %s, cours %s", student_id, course_id)
        return
    row.status = WITHDRAWN
    db.flush()


def enroll(
    db: Session,
    course_id: uuid.UUID,
    actor: User,
    student_id: Optional[uuid.UUID] = None,
) -> EnrollmentResult:
    """
    Inscrit un élève à un cours.
    Préconditions : cours existant et ouvert aux inscriptions, élève non
    déjà inscrit (actif), au moins une place disponible.
    """
    try:
        with transaction(db):
            course = _load_course_for_update(db, course_id)
            student = _resolve_student(db, actor, student_id)
            authorize(actor, "enrollment:enroll", {"student_user_id": student.user_id},
                      "Vous ne pouvez inscrire que vous-même.")

            if course.status != "open_enrollment":
                raise ValidationError("Ce cours n'est pas ouvert aux inscriptions.")

            entry = _roster_entry(db, course.id, student.id)
            if entry is not None and entry.status == ACTIVE:
                raise ConflictError("L'élève est déjà inscrit à ce cours.")

            if refresh_available_seats(db, course) <= 0:
                raise ValidationError("Plus aucune place disponible pour ce cours.")

            now = utcnow()
            if entry is None:
                entry = CourseRosterEntry(course_id=course.id, student_id=student.id, enrolled_at=now, status=ACTIVE)
                db.add(entry)
            else:
                # Réinscription après un retrait : la ligne existante est réactivée
                entry.status = ACTIVE
                entry.enrolled_at = now
            db.flush()

            _mirror_student_enrollment(db, student.id, course.id, now)
            seats = refresh_available_seats(db, course)
            result = EnrollmentResult(
                course_id=course.id,
                student_id=student.id,
                student_user_id=student.user_id,
                status=ACTIVE,
                enrolled_at=now,
                available_seats=seats,
            )
    except (StaleDataError, IntegrityError):
        logger.warning("Inscription concurrente refusée sur le cours %s", course_id)
        raise ConflictError(CONCURRENT_UPDATE)

    logger.info("Élève %s inscrit au cours %s (%d places restantes)", result.student_id, course_id, seats)
    return result


def withdraw(
    db: Session,
    course_id: uuid.UUID,
    actor: User,
    student_id: Optional[uuid.UUID] = None,
) -> EnrollmentResult:
    """
    Désinscrit un élève : le registre du cours et la liste miroir de l'élève
    passent à 'withdrawn' dans la même transaction.
    Seuls un administrateur ou l'élève lui-même peuvent désinscrire.
    """
    try:
        with transaction(db):
            course = _load_course_for_update(db, course_id)
            student = _resolve_student(db, actor, student_id)
            authorize(actor, "enrollment:withdraw", {"student_user_id": student.user_id},
                      "Vous ne pouvez annuler que votre propre inscription.")

            entry = _roster_entry(db, course.id, student.id)
            if entry is None or entry.status != ACTIVE:
                raise NotFoundError("L'élève n'est pas inscrit à ce cours.")

            entry.status = WITHDRAWN
            db.flush()

            _mirror_withdrawal(db, student.id, course.id)
            seats = refresh_available_seats(db, course)
            result = EnrollmentResult(
                course_id=course.id,
                student_id=student.id,
                student_user_id=student.user_id,
                status=WITHDRAWN,
                enrolled_at=entry.enrolled_at,
                available_seats=seats,
            )
    except (StaleDataError, IntegrityError):
        logger.warning("Désinscription concurrente refusée sur le cours %s", course_id)
        raise ConflictError(CONCURRENT_UPDATE)

    logger.info("Élève %s désinscrit du cours %s (%d places restantes)", result.student_id, course_id, seats)
    return result
