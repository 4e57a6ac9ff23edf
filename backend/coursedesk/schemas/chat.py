"""
Schémas Pydantic pour la messagerie interne.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

CONVERSATION_TYPES = ("direct", "group", "course")
MESSAGE_KINDS = ("text", "attachment", "system")
MAX_MESSAGE_LENGTH = 5000


class Attachment(BaseModel):
    name: str
    url: str
    mime_type: Optional[str] = None
    size: Optional[int] = None


class ConversationCreate(BaseModel):
    type: str
    title: Optional[str] = None
    participant_ids: List[uuid.UUID] = Field(min_length=1)
    related_course_id: Optional[uuid.UUID] = None
    read_only: bool = False
    initial_message: Optional[str] = Field(default=None, max_length=MAX_MESSAGE_LENGTH)

    @field_validator("type")
    @classmethod
    def type_valid(cls, v: str) -> str:
        if v not in CONVERSATION_TYPES:
            raise ValueError(f"Type de conversation invalide. Valeurs acceptées : {', '.join(CONVERSATION_TYPES)}.")
        return v


class ParticipantsAdd(BaseModel):
    user_ids: List[uuid.UUID] = Field(min_length=1)


class ArchiveRequest(BaseModel):
    archived: bool = True


class ParticipantResponse(BaseModel):
    user_id: uuid.UUID
    full_name: Optional[str] = None
    role: str
    active: bool
    added_at: datetime


class LastMessage(BaseModel):
    content: str
    sender_id: uuid.UUID
    sent_at: datetime


class ConversationResponse(BaseModel):
    id: uuid.UUID
    type: str
    title: Optional[str] = None
    related_course_id: Optional[uuid.UUID] = None
    participants: List[ParticipantResponse] = []
    last_message: Optional[LastMessage] = None
    archived: bool
    read_only: bool
    creator_id: uuid.UUID
    created_at: Optional[datetime] = None


class MessageCreate(BaseModel):
    content: str = Field(max_length=MAX_MESSAGE_LENGTH)
    kind: str = "text"
    attachments: List[Attachment] = []
    reply_to_id: Optional[uuid.UUID] = None

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le message ne peut pas être vide.")
        return v

    @field_validator("kind")
    @classmethod
    def kind_valid(cls, v: str) -> str:
        if v not in MESSAGE_KINDS:
            raise ValueError(f"Type de message invalide. Valeurs acceptées : {', '.join(MESSAGE_KINDS)}.")
        return v


class ReadReceipt(BaseModel):
    user_id: uuid.UUID
    read_at: datetime


class MessageResponse(BaseModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    sender_name: Optional[str] = None
    content: str
    kind: str
    attachments: List[Attachment] = []
    reply_to_id: Optional[uuid.UUID] = None
    sent_at: datetime
    read_by: List[ReadReceipt] = []


class MarkReadRequest(BaseModel):
    """Sans message_ids, tous les messages de la conversation sont marqués lus."""
    message_ids: Optional[List[uuid.UUID]] = None
