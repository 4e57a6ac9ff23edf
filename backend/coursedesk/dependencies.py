"""
Dépendances FastAPI partagées : authentification par jeton Bearer,
contrôle des rôles et accès au hub de notifications.
"""

import logging
import uuid
from datetime import timezone
from typing import Optional

from fastapi import Depends
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from coursedesk.database import get_db
from coursedesk.errors import AuthenticationError, ForbiddenError, NotFoundError
from coursedesk.models.user import User
from coursedesk.notifications import NotificationHub
from coursedesk.policy import authorize
from coursedesk.security import decode_access_token

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def authenticate_token(db: Session, token: Optional[str]) -> User:
    """
    Résout un jeton d'accès en identité.
    Utilisé par les routes HTTP et par le canal WebSocket.
    """
    if not token:
        raise AuthenticationError("Vous n'êtes pas authentifié. Veuillez vous connecter.")

    payload = decode_access_token(token)
    if payload is None:
        logger.warning("Jeton invalide ou expiré rejeté.")
        raise AuthenticationError("Jeton invalide ou expiré.")

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError):
        raise AuthenticationError("Jeton invalide ou expiré.")

    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("L'utilisateur associé à ce jeton n'existe plus.")
    if not user.active:
        raise AuthenticationError("Ce compte est désactivé.")

    # Un jeton émis avant le dernier changement de mot de passe n'est plus valable
    issued_at = payload.get("iat")
    if user.password_changed_at is not None and issued_at is not None:
        changed_at = user.password_changed_at.replace(tzinfo=timezone.utc)
        if changed_at.timestamp() > float(issued_at):
            raise AuthenticationError("Mot de passe modifié récemment. Veuillez vous reconnecter.")

    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """Dépendance : identité authentifiée de la requête (401 sinon)."""
    token = credentials.credentials if credentials else None
    return authenticate_token(db, token)


def require_roles(*roles: str):
    """Dépendance : restreint la route aux rôles donnés (403 sinon)."""

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise ForbiddenError("Vous n'avez pas la permission d'effectuer cette action.")
        return user

    return checker


def get_notification_hub(connection: HTTPConnection) -> NotificationHub:
    return connection.app.state.notification_hub


def require_permission(action: str):
    """Dépendance : applique une règle de la politique d'accès qui ne dépend pas de la ressource."""

    def checker(user: User = Depends(get_current_user)) -> User:
        authorize(user, action)
        return user

    return checker
