"""
Schémas Pydantic pour l'authentification et les identités.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, field_validator

from coursedesk.policy import ROLES
from coursedesk.schemas.common import not_blank

MIN_PASSWORD_LENGTH = 6


def _check_password(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères.")
    return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    """Création d'une identité par un administrateur (POST /auth/register)."""
    full_name: str
    email: EmailStr
    password: str
    role: str = "student"

    @field_validator("full_name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        return not_blank(v)

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _check_password(v)

    @field_validator("role")
    @classmethod
    def role_valid(cls, v: str) -> str:
        if v not in ROLES:
            raise ValueError(f"Rôle invalide. Valeurs acceptées : {', '.join(ROLES)}.")
        return v


class UserResponse(BaseModel):
    """Identité exposée au client. Le hash du mot de passe n'est jamais sérialisé."""
    id: uuid.UUID
    full_name: str
    email: str
    role: str
    profile_photo: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    token: str
    user: UserResponse


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _check_password(v)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ForgotPasswordResponse(BaseModel):
    # Renseigné uniquement en environnement de développement
    reset_token: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    password: str

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _check_password(v)
