"""
Limitation de débit par seau à jetons (token bucket), un seau par
(budget, adresse IP du client).

Trois budgets : auth (routes d'authentification), api (toutes les autres
routes) et admin (mutations réservées aux administrateurs).
"""

import logging
import threading
import time
from typing import Dict, Optional, Tuple

from fastapi import Request
from pydantic import BaseModel, Field, model_validator

from coursedesk.config import settings
from coursedesk.errors import RateLimitError

logger = logging.getLogger(__name__)


class TokenBucket(BaseModel):
    """Seau de `capacity` jetons, rechargé de `refill_rate` jetons par seconde."""

    capacity: int = Field(..., gt=0)
    refill_rate: float = Field(..., gt=0.0)
    tokens: float = Field(default=-1.0)
    last_refill: float = Field(default=0.0, ge=0.0)

    @model_validator(mode="after")
    def initialize_tokens_and_time(self) -> "TokenBucket":
        if self.tokens < 0:
            self.tokens = float(self.capacity)
        if self.last_refill == 0.0:
            self.last_refill = time.monotonic()
        return self

    def consume(self, now: Optional[float] = None) -> float:
        """
        Consomme un jeton. Retourne 0 en cas de succès, sinon le nombre
        de secondes à attendre avant qu'un jeton soit de nouveau disponible.
        """
        now = time.monotonic() if now is None else now
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(float(self.capacity), self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= 1:
            self.tokens -= 1
            return 0.0
        return (1 - self.tokens) / self.refill_rate


BUDGETS: Dict[str, Tuple[str, str]] = {
    "auth": ("RATE_LIMIT_AUTH_REQUESTS", "RATE_LIMIT_AUTH_WINDOW"),
    "api": ("RATE_LIMIT_API_REQUESTS", "RATE_LIMIT_API_WINDOW"),
    "admin": ("RATE_LIMIT_ADMIN_REQUESTS", "RATE_LIMIT_ADMIN_WINDOW"),
}

MESSAGES = {
    "auth": "Trop de tentatives d'authentification, réessayez dans 15 minutes.",
    "api": "Trop de requêtes, réessayez dans quelques instants.",
    "admin": "Limite d'opérations administratives atteinte, réessayez plus tard.",
}

_buckets: Dict[Tuple[str, str], TokenBucket] = {}
_lock = threading.Lock()


def _bucket_for(budget: str, client: str) -> TokenBucket:
    key = (budget, client)
    bucket = _buckets.get(key)
    if bucket is None:
        requests_attr, window_attr = BUDGETS[budget]
        capacity = getattr(settings, requests_attr)
        window = getattr(settings, window_attr)
        bucket = TokenBucket(capacity=capacity, refill_rate=capacity / window)
        _buckets[key] = bucket
    return bucket


def check(budget: str, client: str) -> None:
    """Lève RateLimitError si le budget du client est épuisé."""
    if not settings.RATE_LIMIT_ENABLED:
        return
    with _lock:
        wait = _bucket_for(budget, client).consume()
    if wait > 0:
        logger.warning("Limite de débit '%s' atteinte pour %s", budget, client)
        raise RateLimitError(MESSAGES[budget], retry_after=max(1, int(wait + 0.999)))


def rate_limit(budget: str):
    """Dépendance FastAPI appliquant le budget donné à l'adresse du client."""
    if budget not in BUDGETS:
        raise ValueError(f"Budget de limitation inconnu : {budget}")

    def dependency(request: Request) -> None:
        client = request.client.host if request.client else "anonymous"
        check(budget, client)

    return dependency


def reset() -> None:
    """Vide tous les seaux (utilisé par les tests)."""
    with _lock:
        _buckets.clear()
