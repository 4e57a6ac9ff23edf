"""
Erreurs métier de l'application.

Les services lèvent ces exceptions ; les handlers globaux de main.py les
convertissent en réponse JSON {status: "error", message, errors?}.
Toute autre exception est considérée comme un défaut interne (500).
"""

from typing import Optional


class AppError(Exception):
    """Erreur opérationnelle : attendue, sûre à renvoyer telle quelle au client."""

    status_code = 500
    default_message = "Une erreur est survenue."

    def __init__(self, message: Optional[str] = None, errors: Optional[dict] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Données invalides."


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentification requise."


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Vous n'avez pas la permission d'effectuer cette action."


class NotFoundError(AppError):
    status_code = 404
    default_message = "Ressource introuvable."


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflit avec l'état actuel de la ressource."


class RateLimitError(AppError):
    status_code = 429
    default_message = "Trop de requêtes, veuillez réessayer plus tard."

    def __init__(self, message: Optional[str] = None, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after
