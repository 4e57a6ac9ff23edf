"""
Canal temps réel : WS /api/ws?token=<jeton d'accès>.

Messages client → serveur : {"event": ..., "data": {...}}
  join_chat, leave_chat, send_message, typing, mark_read
Événements serveur : connected, new_message, user_typing, messages_read,
notification, error.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from coursedesk.database import get_db
from coursedesk.dependencies import authenticate_token, get_notification_hub
from coursedesk.errors import AppError, ValidationError
from coursedesk.models.user import User
from coursedesk.notifications import NotificationHub, chat_room
from coursedesk.schemas.chat import MessageCreate
from coursedesk.services import chat_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Temps réel"])


def _conversation_id(data: dict) -> uuid.UUID:
    try:
        return uuid.UUID(str(data["conversation_id"]))
    except (KeyError, ValueError):
        raise ValidationError("conversation_id manquant ou invalide.")


class ChatSession:
    """Traite les événements d'une connexion authentifiée."""

    def __init__(self, websocket: WebSocket, hub: NotificationHub, db: Session, user: User) -> None:
        self.websocket = websocket
        self.hub = hub
        self.db = db
        self.user = user
        self.handlers = {
            "join_chat": self.join_chat,
            "leave_chat": self.leave_chat,
            "send_message": self.send_message,
            "typing": self.typing,
            "mark_read": self.mark_read,
        }

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})

    async def dispatch(self, payload: Any) -> None:
        if not isinstance(payload, dict) or payload.get("event") not in self.handlers:
            await self.send("error", {"message": "Événement inconnu."})
            return
        data = payload.get("data") or {}
        try:
            await self.handlers[payload["event"]](data)
        except AppError as exc:
            await self.send("error", {"event": payload["event"], "message": exc.message})
        except SchemaValidationError as exc:
            await self.send("error", {"event": payload["event"], "message": "Données invalides.",
                                      "errors": [e["msg"] for e in exc.errors()]})

    async def _ensure_participant(self, conversation_id: uuid.UUID) -> None:
        allowed = await run_in_threadpool(chat_service.is_participant, self.db, conversation_id, self.user.id)
        if not allowed:
            raise ValidationError("Vous ne participez pas à cette conversation.")

    async def join_chat(self, data: dict) -> None:
        conversation_id = _conversation_id(data)
        await self._ensure_participant(conversation_id)
        await self.hub.join(self.websocket, chat_room(conversation_id))

    async def leave_chat(self, data: dict) -> None:
        await self.hub.leave(self.websocket, chat_room(_conversation_id(data)))

    async def send_message(self, data: dict) -> None:
        conversation_id = _conversation_id(data)
        message_data = MessageCreate(**{k: v for k, v in data.items() if k != "conversation_id"})
        message = await run_in_threadpool(
            chat_service.send_message, self.db, self.user, conversation_id, message_data
        )
        await self.hub.broadcast_room(chat_room(conversation_id), "new_message", message)

    async def typing(self, data: dict) -> None:
        conversation_id = _conversation_id(data)
        room = chat_room(conversation_id)
        if self.websocket not in self.hub.room_members(room):
            raise ValidationError("Rejoignez la conversation avant de signaler une saisie.")
        await self.hub.broadcast_room(
            room,
            "user_typing",
            {"conversation_id": conversation_id, "user_id": self.user.id,
             "is_typing": bool(data.get("is_typing", True))},
            exclude=self.websocket,
        )

    async def mark_read(self, data: dict) -> None:
        conversation_id = _conversation_id(data)
        message_ids: Optional[list] = data.get("message_ids")
        if message_ids is not None:
            try:
                message_ids = [uuid.UUID(str(m)) for m in message_ids]
            except ValueError:
                raise ValidationError("message_ids invalides.")
        ids = await run_in_threadpool(chat_service.mark_read, self.db, self.user, conversation_id, message_ids)
        await self.hub.broadcast_room(
            chat_room(conversation_id),
            "messages_read",
            {"conversation_id": conversation_id, "user_id": self.user.id, "message_ids": ids},
        )


@router.websocket("/api/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = None,
    db: Session = Depends(get_db),
    hub: NotificationHub = Depends(get_notification_hub),
):
    """Authentifie la connexion avec le jeton d'accès ; fermeture 1008 en cas d'échec."""
    try:
        user = await run_in_threadpool(authenticate_token, db, token)
    except AppError as exc:
        logger.warning("Connexion WebSocket refusée : %s", exc.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    await hub.connect(websocket, user.id, user.role)
    session = ChatSession(websocket, hub, db, user)
    try:
        await session.send("connected", {"user_id": str(user.id), "role": user.role})
        while True:
            try:
                payload = await websocket.receive_json()
            except ValueError:
                await session.send("error", {"message": "Message JSON invalide."})
                continue
            await session.dispatch(payload)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(websocket)
