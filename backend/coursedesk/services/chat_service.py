"""
Service métier pour la messagerie interne : conversations directes,
de groupe ou liées à un cours, messages et accusés de lecture.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.orm import Session, aliased

from coursedesk.database import transaction, utcnow
from coursedesk.errors import NotFoundError, ValidationError
from coursedesk.models.conversation import Conversation, ConversationParticipant, Message, MessageRead
from coursedesk.models.course import Course
from coursedesk.models.user import User
from coursedesk.policy import authorize
from coursedesk.schemas.chat import (
    ConversationCreate,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    ParticipantResponse,
    ParticipantsAdd,
)

logger = logging.getLogger(__name__)

SNAPSHOT_LENGTH = 100


# --- Chargement et faits d'autorisation ---

def _load(db: Session, conversation_id: uuid.UUID) -> Conversation:
    conversation = db.get(Conversation, conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation introuvable.")
    return conversation


def _participant(db: Session, conversation_id: uuid.UUID, user_id: uuid.UUID) -> Optional[ConversationParticipant]:
    return db.execute(
        select(ConversationParticipant).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
    ).scalar_one_or_none()


def _facts(db: Session, conversation: Conversation, actor: User, **extra) -> dict:
    membership = _participant(db, conversation.id, actor.id)
    active = membership is not None and membership.active
    return {
        "is_participant": active,
        "is_conversation_admin": active and membership.role == "admin",
        "read_only": conversation.read_only,
        **extra,
    }


def participant_user_ids(db: Session, conversation_id: uuid.UUID) -> list[uuid.UUID]:
    return list(db.execute(
        select(ConversationParticipant.user_id).where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.active.is_(True),
        )
    ).scalars().all())


def is_participant(db: Session, conversation_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    membership = _participant(db, conversation_id, user_id)
    return membership is not None and membership.active


# --- Sérialisation ---

def _to_response(db: Session, conversation: Conversation) -> ConversationResponse:
    rows = db.execute(
        select(ConversationParticipant, User.full_name)
        .join(User, User.id == ConversationParticipant.user_id)
        .where(ConversationParticipant.conversation_id == conversation.id)
        .order_by(ConversationParticipant.added_at)
    ).all()
    return ConversationResponse(
        id=conversation.id,
        type=conversation.type,
        title=conversation.title,
        related_course_id=conversation.related_course_id,
        participants=[
            ParticipantResponse(
                user_id=p.user_id,
                full_name=full_name,
                role=p.role,
                active=p.active,
                added_at=p.added_at,
            )
            for p, full_name in rows
        ],
        last_message=conversation.last_message,
        archived=conversation.archived,
        read_only=conversation.read_only,
        creator_id=conversation.creator_id,
        created_at=conversation.created_at,
    )


def _message_responses(db: Session, messages: list[Message]) -> list[MessageResponse]:
    if not messages:
        return []
    ids = [m.id for m in messages]
    reads = defaultdict(list)
    for read in db.execute(select(MessageRead).where(MessageRead.message_id.in_(ids))).scalars().all():
        reads[read.message_id].append({"user_id": read.user_id, "read_at": read.read_at})
    names = dict(db.execute(
        select(User.id, User.full_name).where(User.id.in_({m.sender_id for m in messages}))
    ).all())
    return [
        MessageResponse(
            id=m.id,
            conversation_id=m.conversation_id,
            sender_id=m.sender_id,
            sender_name=names.get(m.sender_id),
            content=m.content,
            kind=m.kind,
            attachments=m.attachments or [],
            reply_to_id=m.reply_to_id,
            sent_at=m.sent_at,
            read_by=reads.get(m.id, []),
        )
        for m in messages
    ]


def _snapshot(message: Message) -> dict:
    return {
        "content": message.content[:SNAPSHOT_LENGTH],
        "sender_id": str(message.sender_id),
        "sent_at": message.sent_at.isoformat(),
    }


def _add_message(db: Session, conversation: Conversation, sender_id: uuid.UUID, data: MessageCreate) -> Message:
    """Ajoute le message, l'expéditeur comme lecteur et met à jour l'instantané de la conversation."""
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=data.content,
        kind=data.kind,
        attachments=[a.model_dump() for a in data.attachments] or None,
        reply_to_id=data.reply_to_id,
        sent_at=utcnow(),
    )
    db.add(message)
    db.flush()
    db.add(MessageRead(message_id=message.id, user_id=sender_id, read_at=message.sent_at))
    conversation.last_message = _snapshot(message)
    conversation.last_message_at = message.sent_at
    return message


# --- Conversations ---

def list_conversations(db: Session, actor: User, archived: Optional[bool] = None) -> list[ConversationResponse]:
    """Conversations dont l'acteur est participant actif, les plus récemment actives d'abord."""
    query = (
        select(Conversation)
        .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
        .where(
            ConversationParticipant.user_id == actor.id,
            ConversationParticipant.active.is_(True),
        )
    )
    if archived is not None:
        query = query.where(Conversation.archived.is_(archived))
    conversations = db.execute(
        query.order_by(Conversation.last_message_at.desc().nulls_last(), Conversation.created_at.desc())
    ).scalars().all()
    return [_to_response(db, c) for c in conversations]


def get_conversation(db: Session, actor: User, conversation_id: uuid.UUID) -> ConversationResponse:
    conversation = _load(db, conversation_id)
    authorize(actor, "conversation:read", _facts(db, conversation, actor),
              "Vous ne participez pas à cette conversation.")
    return _to_response(db, conversation)


def find_direct_conversation(db: Session, user_a: uuid.UUID, user_b: uuid.UUID) -> Optional[Conversation]:
    """
    Conversation directe existante entre deux identités, archivée ou non.
    Une conversation archivée est réutilisée plutôt que dupliquée.
    """
    pa = aliased(ConversationParticipant)
    pb = aliased(ConversationParticipant)
    return db.execute(
        select(Conversation)
        .join(pa, and_(pa.conversation_id == Conversation.id, pa.user_id == user_a))
        .join(pb, and_(pb.conversation_id == Conversation.id, pb.user_id == user_b))
        .where(Conversation.type == "direct")
        .limit(1)
    ).scalar_one_or_none()


def create_conversation(db: Session, actor: User, data: ConversationCreate) -> tuple[ConversationResponse, bool]:
    """
    Crée une conversation. Retourne (conversation, créée).
    Pour une conversation directe déjà existante entre les deux mêmes
    identités, la conversation existante est retournée avec créée=False.
    """
    others = list(dict.fromkeys(uid for uid in data.participant_ids if uid != actor.id))

    found = set(db.execute(select(User.id).where(User.id.in_(others), User.active.is_(True))).scalars().all())
    missing = [uid for uid in others if uid not in found]

    if data.type == "direct":
        if len(others) != 1:
            raise ValidationError("Une conversation directe doit avoir exactement un autre participant.")
        if missing:
            raise NotFoundError("Participant introuvable.")
        existing = find_direct_conversation(db, actor.id, others[0])
        if existing is not None:
            return _to_response(db, existing), False
    else:
        if not others:
            raise ValidationError("La conversation doit avoir au moins un autre participant.")
        if missing:
            raise ValidationError("Un ou plusieurs participants sont introuvables.")

    if data.type == "course":
        if data.related_course_id is None:
            raise ValidationError("Une conversation de cours doit référencer un cours.")
        if db.get(Course, data.related_course_id) is None:
            raise NotFoundError("Cours introuvable.")

    with transaction(db):
        conversation = Conversation(
            type=data.type,
            title=data.title,
            related_course_id=data.related_course_id if data.type == "course" else None,
            read_only=data.read_only,
            creator_id=actor.id,
        )
        db.add(conversation)
        db.flush()
        db.add(ConversationParticipant(
            conversation_id=conversation.id, user_id=actor.id, role="admin", added_by=actor.id,
        ))
        for uid in others:
            db.add(ConversationParticipant(
                conversation_id=conversation.id, user_id=uid, role="member", added_by=actor.id,
            ))
        if data.initial_message and data.initial_message.strip():
            _add_message(db, conversation, actor.id, MessageCreate(content=data.initial_message))

    db.refresh(conversation)
    logger.info("Conversation %s créée (%s, %d participants)", conversation.id, conversation.type, len(others) + 1)
    return _to_response(db, conversation), True


def add_participants(db: Session, actor: User, conversation_id: uuid.UUID, data: ParticipantsAdd) -> ConversationResponse:
    """Ajoute ou réactive des participants. Interdit sur une conversation directe."""
    conversation = _load(db, conversation_id)
    authorize(actor, "conversation:manage", _facts(db, conversation, actor),
              "Seuls les administrateurs de la conversation peuvent ajouter des participants.")
    if conversation.type == "direct":
        raise ValidationError("Impossible d'ajouter des participants à une conversation directe.")

    user_ids = list(dict.fromkeys(data.user_ids))
    found = set(db.execute(select(User.id).where(User.id.in_(user_ids), User.active.is_(True))).scalars().all())
    if len(found) != len(user_ids):
        raise ValidationError("Un ou plusieurs utilisateurs sont introuvables.")

    with transaction(db):
        for uid in user_ids:
            membership = _participant(db, conversation.id, uid)
            if membership is None:
                db.add(ConversationParticipant(
                    conversation_id=conversation.id, user_id=uid, role="member", added_by=actor.id,
                ))
            elif not membership.active:
                membership.active = True
                membership.added_at = utcnow()
                membership.added_by = actor.id

    return _to_response(db, conversation)


def remove_participant(db: Session, actor: User, conversation_id: uuid.UUID, user_id: uuid.UUID) -> ConversationResponse:
    """Retrait logique (active=False) : soi-même, administrateur de la conversation ou administrateur."""
    conversation = _load(db, conversation_id)
    authorize(actor, "conversation:remove_participant",
              _facts(db, conversation, actor, target_user_id=user_id),
              "Vous n'avez pas la permission de retirer ce participant.")
    if conversation.type == "direct":
        raise ValidationError("Impossible de retirer un participant d'une conversation directe.")

    membership = _participant(db, conversation.id, user_id)
    if membership is None or not membership.active:
        raise NotFoundError("Participant introuvable dans cette conversation.")

    membership.active = False
    db.commit()
    return _to_response(db, conversation)


def set_archived(db: Session, actor: User, conversation_id: uuid.UUID, archived: bool) -> ConversationResponse:
    conversation = _load(db, conversation_id)
    authorize(actor, "conversation:archive", _facts(db, conversation, actor),
              "Vous ne participez pas à cette conversation.")
    conversation.archived = archived
    db.commit()
    db.refresh(conversation)
    return _to_response(db, conversation)


# --- Messages ---

def _mark_read(db: Session, user_id: uuid.UUID, message_ids: list[uuid.UUID]) -> int:
    """Ajoute un accusé de lecture pour chaque message qui n'en a pas encore pour ce lecteur."""
    if not message_ids:
        return 0
    already = set(db.execute(
        select(MessageRead.message_id).where(
            MessageRead.user_id == user_id,
            MessageRead.message_id.in_(message_ids),
        )
    ).scalars().all())
    now = utcnow()
    added = 0
    for message_id in message_ids:
        if message_id not in already:
            db.add(MessageRead(message_id=message_id, user_id=user_id, read_at=now))
            added += 1
    return added


def list_messages(
    db: Session,
    actor: User,
    conversation_id: uuid.UUID,
    page: int = 1,
    limit: int = 50,
    before: Optional[datetime] = None,
) -> list[MessageResponse]:
    """
    Page de messages, les plus récents d'abord côté requête puis remis
    dans l'ordre chronologique. Les messages lus sont marqués comme tels.
    """
    conversation = _load(db, conversation_id)
    authorize(actor, "conversation:read", _facts(db, conversation, actor),
              "Vous ne participez pas à cette conversation.")

    query = select(Message).where(
        Message.conversation_id == conversation.id,
        Message.deleted.is_(False),
    )
    if before is not None:
        query = query.where(Message.sent_at < before)
    messages = db.execute(
        query.order_by(Message.sent_at.desc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    messages = list(reversed(messages))

    if _mark_read(db, actor.id, [m.id for m in messages if m.sender_id != actor.id]):
        db.commit()
    return _message_responses(db, messages)


def send_message(db: Session, actor: User, conversation_id: uuid.UUID, data: MessageCreate) -> MessageResponse:
    conversation = _load(db, conversation_id)
    authorize(actor, "conversation:post", _facts(db, conversation, actor),
              "Vous ne pouvez pas envoyer de message dans cette conversation.")

    if data.reply_to_id is not None:
        parent = db.get(Message, data.reply_to_id)
        if parent is None or parent.conversation_id != conversation.id:
            raise ValidationError("Le message cité n'appartient pas à cette conversation.")

    with transaction(db):
        message = _add_message(db, conversation, actor.id, data)

    db.refresh(message)
    return _message_responses(db, [message])[0]


def mark_read(
    db: Session, actor: User, conversation_id: uuid.UUID, message_ids: Optional[list[uuid.UUID]] = None
) -> list[uuid.UUID]:
    """Idempotent. Sans message_ids, tous les messages non supprimés de la conversation sont concernés."""
    conversation = _load(db, conversation_id)
    authorize(actor, "conversation:read", _facts(db, conversation, actor),
              "Vous ne participez pas à cette conversation.")

    query = select(Message.id).where(
        Message.conversation_id == conversation.id,
        Message.deleted.is_(False),
    )
    if message_ids:
        query = query.where(Message.id.in_(message_ids))
    ids = list(db.execute(query).scalars().all())
    if _mark_read(db, actor.id, ids):
        db.commit()
    return ids


def delete_message(db: Session, actor: User, conversation_id: uuid.UUID, message_id: uuid.UUID) -> None:
    """Suppression logique par l'expéditeur ou un administrateur."""
    message = db.get(Message, message_id)
    if message is None or message.conversation_id != conversation_id or message.deleted:
        raise NotFoundError("Message introuvable.")
    authorize(actor, "message:delete", {"sender_id": message.sender_id},
              "Vous ne pouvez supprimer que vos propres messages.")
    message.deleted = True
    db.commit()
