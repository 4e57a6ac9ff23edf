"""
Agrégateurs de données pour les rapports, un par type de rapport.

Chaque agrégateur reçoit la session et les paramètres de génération
(ReportParams sérialisés) et retourne un dictionnaire JSON. Le registre est
extensible : register_aggregator("kind") remplace l'agrégateur par défaut.
"""

import uuid
from datetime import date, datetime, time
from typing import Callable, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from coursedesk.models.course import Course, CourseRosterEntry
from coursedesk.models.student import AcademicRecord, StudentProfile
from coursedesk.models.teacher import TeacherProfile

Aggregator = Callable[[Session, dict], dict]

_AGGREGATORS: dict[str, Aggregator] = {}


def register_aggregator(kind: str):
    def decorator(fn: Aggregator) -> Aggregator:
        _AGGREGATORS[kind] = fn
        return fn
    return decorator


def get_aggregator(kind: str) -> Optional[Aggregator]:
    return _AGGREGATORS.get(kind)


def _uuids(values) -> list[uuid.UUID]:
    return [uuid.UUID(str(v)) for v in values or []]


def _date_bounds(params: dict) -> tuple[Optional[datetime], Optional[datetime]]:
    start = params.get("start_date")
    end = params.get("end_date")
    start_dt = datetime.combine(date.fromisoformat(start), time.min) if start else None
    end_dt = datetime.combine(date.fromisoformat(end), time.max) if end else None
    return start_dt, end_dt


def _courses(db: Session, params: dict) -> list[Course]:
    query = select(Course)
    course_ids = _uuids(params.get("course_ids"))
    teacher_ids = _uuids(params.get("teacher_ids"))
    if course_ids:
        query = query.where(Course.id.in_(course_ids))
    if teacher_ids:
        query = query.where(Course.teacher_id.in_(teacher_ids))
    return list(db.execute(query.order_by(Course.name)).scalars().all())


def _round(value) -> Optional[float]:
    return round(float(value), 2) if value is not None else None


@register_aggregator("performance")
def performance(db: Session, params: dict) -> dict:
    """Moyenne des notes finales et taux de réussite par cours."""
    student_ids = _uuids(params.get("student_ids"))
    rows = []
    for course in _courses(db, params):
        query = select(
            func.count(AcademicRecord.id),
            func.avg(AcademicRecord.final_grade),
            func.sum(case((AcademicRecord.status == "passed", 1), else_=0)),
        ).where(AcademicRecord.course_id == course.id)
        if student_ids:
            query = query.where(AcademicRecord.student_id.in_(student_ids))
        count, avg_grade, passed = db.execute(query).one()
        rows.append({
            "course_id": str(course.id),
            "course_name": course.name,
            "records": count or 0,
            "average_grade": _round(avg_grade),
            "pass_rate": _round(100 * (passed or 0) / count) if count else None,
        })
    return {"courses": rows, "total_courses": len(rows)}


@register_aggregator("attendance")
def attendance(db: Session, params: dict) -> dict:
    """Taux de présence moyen par cours."""
    student_ids = _uuids(params.get("student_ids"))
    rows = []
    for course in _courses(db, params):
        query = select(func.count(AcademicRecord.id), func.avg(AcademicRecord.attendance_pct)).where(
            AcademicRecord.course_id == course.id,
            AcademicRecord.attendance_pct.is_not(None),
        )
        if student_ids:
            query = query.where(AcademicRecord.student_id.in_(student_ids))
        count, avg_pct = db.execute(query).one()
        rows.append({
            "course_id": str(course.id),
            "course_name": course.name,
            "records": count or 0,
            "average_attendance_pct": _round(avg_pct),
        })
    return {"courses": rows, "total_courses": len(rows)}


@register_aggregator("administrative")
def administrative(db: Session, params: dict) -> dict:
    """Effectifs : élèves, enseignants, cours par statut et inscriptions sur la période."""
    start, end = _date_bounds(params)

    courses_by_status = dict(db.execute(
        select(Course.status, func.count(Course.id)).group_by(Course.status)
    ).all())

    enrollments = select(CourseRosterEntry.status, func.count(CourseRosterEntry.id))
    if start is not None:
        enrollments = enrollments.where(CourseRosterEntry.enrolled_at >= start)
    if end is not None:
        enrollments = enrollments.where(CourseRosterEntry.enrolled_at <= end)
    enrollments_by_status = dict(db.execute(enrollments.group_by(CourseRosterEntry.status)).all())

    seats = db.execute(select(func.sum(Course.capacity), func.sum(Course.available_seats))).one()
    return {
        "students": db.execute(select(func.count(StudentProfile.id))).scalar() or 0,
        "teachers": db.execute(select(func.count(TeacherProfile.id))).scalar() or 0,
        "courses_by_status": courses_by_status,
        "enrollments_by_status": enrollments_by_status,
        "total_capacity": seats[0] or 0,
        "total_available_seats": seats[1] or 0,
    }


@register_aggregator("financial")
def financial(db: Session, params: dict) -> dict:
    # Aucune donnée financière n'est gérée : le rapport le signale explicitement
    return {"available": False, "reason": "Aucune source de données financières n'est configurée."}


@register_aggregator("custom")
def custom(db: Session, params: dict) -> dict:
    """Rappelle les filtres demandés et le volume de données concernées."""
    return {
        "filters": params.get("filters", {}),
        "courses": len(_courses(db, params)),
        "students": len(params.get("student_ids") or []),
        "teachers": len(params.get("teacher_ids") or []),
    }
