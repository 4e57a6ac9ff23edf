"""
Primitives de sécurité : hachage des mots de passe (bcrypt via passlib)
et jetons d'accès JWT signés (python-jose).
"""

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from coursedesk.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# bcrypt n'accepte que 72 octets au maximum
MAX_PASSWORD_BYTES = 72


def _truncate_password(password: str) -> str:
    enc = password.encode("utf-8")
    if len(enc) <= MAX_PASSWORD_BYTES:
        return password
    return enc[:MAX_PASSWORD_BYTES].decode("utf-8", errors="ignore")


def hash_password(plain: str) -> str:
    return pwd_context.hash(_truncate_password(plain))


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    return pwd_context.verify(_truncate_password(plain), hashed)


def create_access_token(user_id, role: str, expires_minutes: Optional[int] = None) -> str:
    """
    Génère un JWT autoporteur {sub, role, iat, exp}.
    Aucun état de session n'est conservé côté serveur.
    """
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now.timestamp(),
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Retourne le contenu du jeton, ou None si la signature ou l'expiration est invalide."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def generate_reset_token() -> tuple[str, str]:
    """Retourne (jeton brut à envoyer, empreinte SHA-256 à stocker)."""
    raw = secrets.token_hex(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
