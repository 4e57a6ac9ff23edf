"""
Modèles SQLAlchemy pour la messagerie interne : conversations, participants,
messages et accusés de lecture.
"""

import uuid
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)

from coursedesk.database import Base, utcnow


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(String(10), nullable=False)  # direct, group, course
    title = Column(String(150), nullable=True)
    related_course_id = Column(Uuid, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    # Instantané dénormalisé du dernier message : {content, sender_id, sent_at}
    last_message = Column(JSON, nullable=True)
    last_message_at = Column(DateTime, nullable=True, index=True)
    archived = Column(Boolean, nullable=False, default=False)
    read_only = Column(Boolean, nullable=False, default=False)
    creator_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"
    __table_args__ = (UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participant"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(10), nullable=False, default="member")  # admin, member
    active = Column(Boolean, nullable=False, default=True)
    added_at = Column(DateTime, nullable=False, default=utcnow)
    added_by = Column(Uuid, ForeignKey("users.id"), nullable=True)


class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    kind = Column(String(12), nullable=False, default="text")  # text, attachment, system
    attachments = Column(JSON, nullable=True)  # [{name, url, mime_type, size}]
    reply_to_id = Column(Uuid, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True)
    deleted = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class MessageRead(Base):
    """Accusé de lecture : un lecteur par message, ajouté une seule fois."""
    __tablename__ = "message_reads"

    message_id = Column(Uuid, ForeignKey("messages.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    read_at = Column(DateTime, nullable=False, default=utcnow)
