"""
Hub de notifications temps réel (WebSocket).

Registre des connexions ouvertes, organisé en salons :
  - user:<id>       toutes les connexions d'une identité
  - role:<role>     toutes les connexions d'un rôle
  - staff           enseignants et administrateurs
  - chat:<id>       connexions ayant rejoint une conversation

Les envois sont « best effort » : une connexion en erreur est retirée du
registre et le message n'est ni conservé ni renvoyé.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

STAFF_ROOM = "staff"


def user_room(user_id) -> str:
    return f"user:{user_id}"


def role_room(role: str) -> str:
    return f"role:{role}"


def chat_room(conversation_id) -> str:
    return f"chat:{conversation_id}"


@dataclass
class Connection:
    user_id: str
    role: str


class NotificationHub:
    """Registre injectable des connexions WebSocket, rempli à la connexion et purgé à la déconnexion."""

    def __init__(self) -> None:
        self._connections: Dict[WebSocket, Connection] = {}
        self._rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id, role: str) -> None:
        async with self._lock:
            self._connections[websocket] = Connection(user_id=str(user_id), role=role)
            self._rooms[user_room(user_id)].add(websocket)
            self._rooms[role_room(role)].add(websocket)
            if role in ("admin", "teacher"):
                self._rooms[STAFF_ROOM].add(websocket)
        logger.info("WebSocket connecté : utilisateur %s (%s)", user_id, role)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            info = self._connections.pop(websocket, None)
            for room in list(self._rooms):
                self._rooms[room].discard(websocket)
                if not self._rooms[room]:
                    del self._rooms[room]
        if info is not None:
            logger.info("WebSocket déconnecté : utilisateur %s", info.user_id)

    async def join(self, websocket: WebSocket, room: str) -> None:
        async with self._lock:
            if websocket in self._connections:
                self._rooms[room].add(websocket)

    async def leave(self, websocket: WebSocket, room: str) -> None:
        async with self._lock:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    def room_members(self, room: str) -> Set[WebSocket]:
        return set(self._rooms.get(room, ()))

    def is_connected(self, user_id) -> bool:
        return bool(self._rooms.get(user_room(user_id)))

    async def broadcast_room(
        self,
        room: str,
        event: str,
        data: Any,
        exclude: Optional[WebSocket] = None,
    ) -> int:
        """Envoie l'événement à tous les membres du salon. Retourne le nombre d'envois réussis."""
        async with self._lock:
            targets = [ws for ws in self._rooms.get(room, ()) if ws is not exclude]
        if not targets:
            return 0

        message = {"event": event, "data": jsonable_encoder(data)}
        delivered = 0
        failed = []
        for websocket in targets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as exc:
                logger.debug("Envoi WebSocket échoué (%s), connexion retirée.", exc)
                failed.append(websocket)

        for websocket in failed:
            await self.disconnect(websocket)
        return delivered

    async def send_to_user(self, user_id, event: str, data: Any) -> int:
        return await self.broadcast_room(user_room(user_id), event, data)

    async def send_to_role(self, role: str, event: str, data: Any) -> int:
        return await self.broadcast_room(role_room(role), event, data)

    async def send_to_staff(self, event: str, data: Any) -> int:
        return await self.broadcast_room(STAFF_ROOM, event, data)
