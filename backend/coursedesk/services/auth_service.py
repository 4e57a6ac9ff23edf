"""
Service d'authentification : connexion, création d'identités,
changement et réinitialisation du mot de passe.
"""

import logging
import smtplib
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from coursedesk.config import settings
from coursedesk.database import utcnow
from coursedesk.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from coursedesk.models.user import User
from coursedesk.schemas.auth import (
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UpdatePasswordRequest,
    UserResponse,
)
from coursedesk.security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from coursedesk.services import email_service

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Email ou mot de passe incorrect."


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        token=create_access_token(user.id, user.role),
        user=UserResponse.model_validate(user),
    )


def ensure_email_available(db: Session, email: str, exclude_user_id: Optional[uuid.UUID] = None) -> None:
    """Lève ConflictError si l'email est déjà utilisé par une autre identité."""
    query = select(User.id).where(User.email == _normalize_email(email))
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    if db.execute(query).scalar() is not None:
        raise ConflictError("Cet email est déjà utilisé.")


def create_identity(db: Session, full_name: str, email: str, password: str, role: str) -> User:
    """
    Ajoute une identité à la session sans valider la transaction :
    l'appelant décide du commit (création d'élève ou d'enseignant).
    """
    ensure_email_available(db, email)
    user = User(
        full_name=full_name,
        email=_normalize_email(email),
        password_hash=hash_password(password),
        role=role,
        active=True,
    )
    db.add(user)
    return user


def login(db: Session, data: LoginRequest) -> TokenResponse:
    """Même message d'erreur pour un email inconnu, un mot de passe faux ou un compte désactivé."""
    user = db.execute(
        select(User).where(User.email == _normalize_email(data.email))
    ).scalar_one_or_none()

    if user is None or not verify_password(data.password, user.password_hash):
        logger.warning("Échec de connexion pour %s", data.email)
        raise AuthenticationError(INVALID_CREDENTIALS)
    if not user.active:
        logger.warning("Connexion refusée pour le compte désactivé %s", data.email)
        raise AuthenticationError(INVALID_CREDENTIALS)

    logger.info("Connexion de l'utilisateur %s (%s)", user.id, user.role)
    return _token_response(user)


def register(db: Session, data: RegisterRequest) -> UserResponse:
    user = create_identity(db, data.full_name, data.email, data.password, data.role)
    db.commit()
    db.refresh(user)
    logger.info("Identité créée : %s (%s)", user.id, user.role)
    return UserResponse.model_validate(user)


def update_password(db: Session, user: User, data: UpdatePasswordRequest) -> TokenResponse:
    if not verify_password(data.current_password, user.password_hash):
        raise AuthenticationError("Mot de passe actuel incorrect.")

    user.password_hash = hash_password(data.new_password)
    user.password_changed_at = utcnow()
    db.commit()
    db.refresh(user)
    logger.info("Mot de passe modifié pour l'utilisateur %s", user.id)
    return _token_response(user)


def forgot_password(db: Session, email: str) -> tuple[User, str]:
    """
    Génère un jeton de réinitialisation valable PASSWORD_RESET_EXPIRE_MINUTES.
    Seule l'empreinte SHA-256 est stockée ; le jeton brut est retourné pour envoi.
    """
    user = db.execute(
        select(User).where(User.email == _normalize_email(email))
    ).scalar_one_or_none()
    if user is None:
        raise NotFoundError("Aucun utilisateur avec cet email.")

    raw, digest = generate_reset_token()
    user.reset_token_hash = digest
    user.reset_token_expires_at = utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    db.commit()
    return user, raw


def deliver_reset_email(to_email: str, full_name: str, raw_token: str) -> None:
    """Tâche d'arrière-plan : un échec SMTP est journalisé, la réponse HTTP est déjà partie."""
    try:
        email_service.send_password_reset_email(to_email, full_name, raw_token)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("Échec de l'envoi de l'email de réinitialisation à %s : %s", to_email, exc)


def reset_password(db: Session, raw_token: str, new_password: str) -> TokenResponse:
    user = db.execute(
        select(User).where(
            User.reset_token_hash == hash_reset_token(raw_token),
            User.reset_token_expires_at > utcnow(),
        )
    ).scalar_one_or_none()
    if user is None:
        raise ValidationError("Jeton invalide ou expiré.")

    user.password_hash = hash_password(new_password)
    user.password_changed_at = utcnow()
    user.reset_token_hash = None
    user.reset_token_expires_at = None
    db.commit()
    db.refresh(user)
    logger.info("Mot de passe réinitialisé pour l'utilisateur %s", user.id)
    return _token_response(user)


def purge_expired_reset_tokens(db: Session) -> int:
    """Efface les jetons de réinitialisation expirés. Retourne le nombre de comptes nettoyés."""
    result = db.execute(
        update(User)
        .where(User.reset_token_expires_at.is_not(None), User.reset_token_expires_at <= utcnow())
        .values(reset_token_hash=None, reset_token_expires_at=None)
    )
    db.commit()
    return result.rowcount or 0
