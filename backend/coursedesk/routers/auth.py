"""
Router d'authentification : connexion, création de compte (admin),
profil courant et gestion du mot de passe.
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from coursedesk.config import settings
from coursedesk.database import get_db
from coursedesk.dependencies import get_current_user, require_roles
from coursedesk.models.user import User
from coursedesk.policy import ADMIN
from coursedesk.rate_limit import rate_limit
from coursedesk.schemas.auth import (
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    UpdatePasswordRequest,
    UserResponse,
)
from coursedesk.schemas.common import ApiResponse, ok
from coursedesk.services import auth_service

router = APIRouter(
    prefix="/api/auth",
    tags=["Authentification"],
    dependencies=[Depends(rate_limit("auth"))],
)


@router.post("/login", response_model=ApiResponse[TokenResponse], summary="Se connecter")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """Retourne un jeton d'accès et l'identité. Même message d'erreur quelle que soit la cause."""
    return ok(auth_service.login(db, data), "Connexion réussie.")


@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=201,
    summary="Créer un compte",
    dependencies=[Depends(rate_limit("admin"))],
)
def register(
    data: RegisterRequest,
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(ADMIN)),
):
    """Crée une identité nue avec un rôle. Réservé aux administrateurs."""
    return ok(auth_service.register(db, data), "Compte créé.")


@router.get("/me", response_model=ApiResponse[UserResponse], summary="Identité courante")
def me(user: User = Depends(get_current_user)):
    return ok(UserResponse.model_validate(user))


@router.patch("/update-password", response_model=ApiResponse[TokenResponse], summary="Changer de mot de passe")
def update_password(
    data: UpdatePasswordRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Vérifie le mot de passe actuel. Les jetons émis auparavant deviennent invalides."""
    return ok(auth_service.update_password(db, user, data), "Mot de passe modifié.")


@router.post(
    "/forgot-password",
    response_model=ApiResponse[ForgotPasswordResponse],
    summary="Demander une réinitialisation",
)
def forgot_password(
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """
    Envoie par email un jeton valable quelques minutes.
    En développement, le jeton est aussi renvoyé dans la réponse.
    """
    user, raw_token = auth_service.forgot_password(db, data.email)
    background_tasks.add_task(auth_service.deliver_reset_email, user.email, user.full_name, raw_token)

    response = ForgotPasswordResponse()
    if settings.ENV == "development":
        response.reset_token = raw_token
    return ok(response, "Un email de réinitialisation a été envoyé.")


@router.patch(
    "/reset-password/{token}",
    response_model=ApiResponse[TokenResponse],
    summary="Réinitialiser le mot de passe",
)
def reset_password(token: str, data: ResetPasswordRequest, db: Session = Depends(get_db)):
    return ok(auth_service.reset_password(db, token, data.password), "Mot de passe réinitialisé.")
