"""
Modèles SQLAlchemy pour les profils enseignants, leurs disponibilités
et la liste des cours qu'ils dispensent.
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Uuid, func

from coursedesk.database import Base


class TeacherProfile(Base):
    __tablename__ = "teacher_profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    specialty = Column(String(150), nullable=False)
    education = Column(JSON, nullable=True)  # [{degree, institution, year}]
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class TeacherAvailability(Base):
    """Créneau de disponibilité hebdomadaire (HH:MM)."""
    __tablename__ = "teacher_availabilities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id = Column(Uuid, ForeignKey("teacher_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    weekday = Column(String(10), nullable=False)  # monday … sunday
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)


class TeacherCourse(Base):
    """Association enseignant ↔ cours dispensés (courses_taught)."""
    __tablename__ = "teacher_courses"

    teacher_id = Column(Uuid, ForeignKey("teacher_profiles.id", ondelete="CASCADE"), primary_key=True)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True)
    assigned_at = Column(DateTime, server_default=func.now())
