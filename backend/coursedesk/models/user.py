"""
Modèle SQLAlchemy pour les identités (comptes utilisateurs).
Un compte n'est jamais supprimé physiquement : il est désactivé (active=False).
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, String, Uuid, func

from coursedesk.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name = Column(String(150), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="student")  # admin, teacher, student
    profile_photo = Column(String(255), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    reset_token_hash = Column(String(64), nullable=True)
    reset_token_expires_at = Column(DateTime, nullable=True)
    password_changed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
