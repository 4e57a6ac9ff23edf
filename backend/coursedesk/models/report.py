"""
Modèles SQLAlchemy pour les rapports générés et leurs droits d'accès.
"""

import uuid
from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, Uuid, func

from coursedesk.database import Base, utcnow


class Report(Base):
    __tablename__ = "reports"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    kind = Column(String(20), nullable=False)  # performance, attendance, financial, administrative, custom
    format = Column(String(10), nullable=False, default="json")  # json, csv, pdf, excel
    # Paramètres de génération : {start_date, end_date, course_ids, student_ids, teacher_ids, filters}
    params = Column(JSON, nullable=False, default=dict)
    payload = Column(JSON, nullable=True)
    status = Column(String(12), nullable=False, default="pending")  # pending, processing, done, error, archived
    error_message = Column(Text, nullable=True)
    creator_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    generated_at = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ReportAccessGrant(Base):
    """Droit de lecture sur un rapport, accordé à un rôle ou à une identité."""
    __tablename__ = "report_access_grants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    grant_kind = Column(String(10), nullable=False)  # role, identity
    value = Column(String(64), nullable=False)
