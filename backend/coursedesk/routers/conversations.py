"""
Router de messagerie : conversations, participants et messages.
Les nouveaux messages sont diffusés au salon de la conversation après la réponse.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response
from sqlalchemy.orm import Session

from coursedesk.database import get_db
from coursedesk.dependencies import get_current_user, get_notification_hub
from coursedesk.models.user import User
from coursedesk.notifications import NotificationHub, chat_room
from coursedesk.rate_limit import rate_limit
from coursedesk.schemas.chat import (
    ArchiveRequest,
    ConversationCreate,
    ConversationResponse,
    MarkReadRequest,
    MessageCreate,
    MessageResponse,
    ParticipantsAdd,
)
from coursedesk.schemas.common import ApiResponse, naive_utc, ok
from coursedesk.services import chat_service

router = APIRouter(
    prefix="/api/conversations",
    tags=["Messagerie"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.get("", response_model=ApiResponse[List[ConversationResponse]], summary="Mes conversations")
def list_conversations(
    archived: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(chat_service.list_conversations(db, user, archived))


@router.post("", response_model=ApiResponse[ConversationResponse], status_code=201, summary="Créer une conversation")
def create_conversation(
    data: ConversationCreate,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Une conversation directe déjà existante entre les deux mêmes personnes
    est renvoyée telle quelle (200) au lieu d'être dupliquée.
    """
    conversation, created = chat_service.create_conversation(db, user, data)
    if not created:
        response.status_code = 200
        return ok(conversation, "La conversation existe déjà.")
    return ok(conversation, "Conversation créée.")


@router.get("/{conversation_id}", response_model=ApiResponse[ConversationResponse], summary="Détail d'une conversation")
def get_conversation(conversation_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ok(chat_service.get_conversation(db, user, conversation_id))


@router.post(
    "/{conversation_id}/participants",
    response_model=ApiResponse[ConversationResponse],
    summary="Ajouter des participants",
)
def add_participants(
    conversation_id: uuid.UUID,
    data: ParticipantsAdd,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(chat_service.add_participants(db, user, conversation_id, data), "Participants ajoutés.")


@router.delete(
    "/{conversation_id}/participants/{user_id}",
    response_model=ApiResponse[ConversationResponse],
    summary="Retirer un participant",
)
def remove_participant(
    conversation_id: uuid.UUID,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(chat_service.remove_participant(db, user, conversation_id, user_id), "Participant retiré.")


@router.patch(
    "/{conversation_id}/archive",
    response_model=ApiResponse[ConversationResponse],
    summary="Archiver une conversation",
)
def set_archived(
    conversation_id: uuid.UUID,
    data: ArchiveRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(chat_service.set_archived(db, user, conversation_id, data.archived))


# --- Messages ---

@router.get(
    "/{conversation_id}/messages",
    response_model=ApiResponse[List[MessageResponse]],
    summary="Messages d'une conversation",
)
def list_messages(
    conversation_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    before: Optional[datetime] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Page de messages en ordre chronologique. Les messages retournés sont marqués lus."""
    return ok(chat_service.list_messages(db, user, conversation_id, page, limit, naive_utc(before)))


@router.post(
    "/{conversation_id}/messages",
    response_model=ApiResponse[MessageResponse],
    status_code=201,
    summary="Envoyer un message",
)
def send_message(
    conversation_id: uuid.UUID,
    data: MessageCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    hub: NotificationHub = Depends(get_notification_hub),
):
    message = chat_service.send_message(db, user, conversation_id, data)
    background_tasks.add_task(hub.broadcast_room, chat_room(conversation_id), "new_message", message)
    return ok(message, "Message envoyé.")


@router.post(
    "/{conversation_id}/read",
    response_model=ApiResponse[List[uuid.UUID]],
    summary="Marquer des messages comme lus",
)
def mark_read(
    conversation_id: uuid.UUID,
    data: Optional[MarkReadRequest] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    message_ids = data.message_ids if data else None
    return ok(chat_service.mark_read(db, user, conversation_id, message_ids))


@router.delete(
    "/{conversation_id}/messages/{message_id}",
    response_model=ApiResponse[None],
    summary="Supprimer un message",
)
def delete_message(
    conversation_id: uuid.UUID,
    message_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    chat_service.delete_message(db, user, conversation_id, message_id)
    return ok(message="Message supprimé.")
