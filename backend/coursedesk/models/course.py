"""
Modèles SQLAlchemy pour le catalogue de cours.

available_seats est une valeur dérivée : elle n'est jamais modifiée autrement
que par compute_available_seats() à partir du registre. La colonne version
sert de verrou optimiste : toute mise à jour concurrente d'un même cours
lève StaleDataError côté ORM.
"""

import uuid
from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)

from coursedesk.database import Base, utcnow


class Course(Base):
    __tablename__ = "courses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=False)
    teacher_id = Column(Uuid, ForeignKey("teacher_profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    total_hours = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="planning")  # planning, open_enrollment, active, completed, cancelled
    capacity = Column(Integer, nullable=False, default=30)
    available_seats = Column(Integer, nullable=False, default=30)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}


class CourseRosterEntry(Base):
    """Inscription d'un élève à un cours (vue cours)."""
    __tablename__ = "course_roster"
    __table_args__ = (UniqueConstraint("course_id", "student_id", name="uq_course_roster"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("student_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    enrolled_at = Column(DateTime, nullable=False, default=utcnow)
    status = Column(String(20), nullable=False, default="active")  # active, completed, withdrawn, dropped


class CourseMaterial(Base):
    """Support pédagogique attaché à un cours."""
    __tablename__ = "course_materials"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    kind = Column(String(20), nullable=False, default="document")  # document, video, link, other
    url = Column(String(500), nullable=False)
    added_at = Column(DateTime, nullable=False, default=utcnow)
