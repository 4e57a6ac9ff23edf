"""
Modèles SQLAlchemy pour les profils élèves.

StudentEnrollment est le miroir côté élève du registre d'un cours
(CourseRosterEntry) : seul le workflow d'inscription écrit dans les deux.
"""

import uuid
from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
    func,
)

from coursedesk.database import Base, utcnow


class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    enrollment_number = Column(String(50), unique=True, nullable=False, index=True)
    address = Column(JSON, nullable=True)  # {street, number, complement, district, city, state, zip_code}
    phone = Column(String(30), nullable=True)
    birth_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class StudentEnrollment(Base):
    """Inscription d'un élève à un cours (vue élève)."""
    __tablename__ = "student_enrollments"
    __table_args__ = (UniqueConstraint("student_id", "course_id", name="uq_student_enrollment"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("student_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    enrolled_at = Column(DateTime, nullable=False, default=utcnow)
    status = Column(String(20), nullable=False, default="active")  # active, completed, withdrawn, dropped


class AcademicRecord(Base):
    """Ligne d'historique académique : résultat final d'un élève pour un cours."""
    __tablename__ = "academic_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("student_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    final_grade = Column(Float, nullable=True)
    attendance_pct = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default="in_progress")  # passed, failed, in_progress
    recorded_at = Column(DateTime, server_default=func.now())
