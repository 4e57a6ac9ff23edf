"""
Modèles SQLAlchemy pour le calendrier académique.
"""

import uuid
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text, Uuid, func

from coursedesk.database import Base


class CalendarEvent(Base):
    __tablename__ = "calendar_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime, nullable=False)
    type = Column(String(20), nullable=False)  # class, exam, holiday, event, meeting, other
    all_day = Column(Boolean, nullable=False, default=False)
    color = Column(String(7), nullable=False, default="#3788d8")
    recurrence = Column(JSON, nullable=True)  # {frequency, interval, weekdays, until}
    creator_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CalendarEventCourse(Base):
    """Association événement ↔ cours concernés."""
    __tablename__ = "calendar_event_courses"

    event_id = Column(Uuid, ForeignKey("calendar_events.id", ondelete="CASCADE"), primary_key=True)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True)
