"""
Service de stockage des fichiers envoyés (photos de profil, supports de cours,
pièces jointes de messages).

Les fichiers sont écrits sous UPLOAD_DIR/<kind>/<horodatage>-<uuid><ext>.
"""

import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile
from sqlalchemy.orm import Session

from coursedesk.config import settings
from coursedesk.database import transaction, utcnow
from coursedesk.errors import NotFoundError, ValidationError
from coursedesk.models.user import User
from coursedesk.schemas.upload import UploadedFile

logger = logging.getLogger(__name__)

MB = 1024 * 1024

_IMAGES = {"image/jpeg", "image/png", "image/webp"}


@dataclass(frozen=True)
class UploadKind:
    max_size_mb: int
    mime_types: frozenset


UPLOAD_KINDS = {
    "profile": UploadKind(2, frozenset(_IMAGES)),
    "materials": UploadKind(20, frozenset(_IMAGES | {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "application/zip",
        "video/mp4",
    })),
    "messages": UploadKind(10, frozenset(_IMAGES | {
        "image/gif",
        "application/pdf",
        "audio/mpeg",
        "audio/wav",
        "video/mp4",
    })),
}


def _kind(kind: str) -> UploadKind:
    if kind not in UPLOAD_KINDS:
        raise ValidationError(
            f"Type d'envoi inconnu. Valeurs acceptées : {', '.join(UPLOAD_KINDS)}."
        )
    return UPLOAD_KINDS[kind]


def _directory(kind: str) -> Path:
    return Path(settings.UPLOAD_DIR) / kind


async def _read_valid(rules: UploadKind, file: UploadFile) -> bytes:
    """Valide le type MIME et la taille ; retourne le contenu sans rien écrire."""
    if file.content_type not in rules.mime_types:
        raise ValidationError(f"Type de fichier non autorisé : {file.content_type}.")

    content = await file.read()
    if not content:
        raise ValidationError("Le fichier est vide.")
    if len(content) > rules.max_size_mb * MB:
        raise ValidationError(f"Fichier trop volumineux. Taille maximale : {rules.max_size_mb} Mo.")
    return content


def _write(kind: str, file: UploadFile, content: bytes) -> UploadedFile:
    original_name = file.filename or "fichier"
    ext = os.path.splitext(original_name)[1].lower()
    filename = f"{utcnow().strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex}{ext}"

    directory = _directory(kind)
    directory.mkdir(parents=True, exist_ok=True)
    (directory / filename).write_bytes(content)

    logger.info("Fichier %s enregistré (%s, %d octets)", filename, kind, len(content))
    return UploadedFile(
        original_name=original_name,
        filename=filename,
        mime_type=file.content_type,
        size=len(content),
        url=f"/api/uploads/{kind}/{filename}",
    )


async def store_file(kind: str, file: UploadFile) -> UploadedFile:
    """Valide le type MIME et la taille puis écrit le fichier sur disque."""
    rules = _kind(kind)
    content = await _read_valid(rules, file)
    return _write(kind, file, content)


async def store_files(kind: str, files: list[UploadFile]) -> list[UploadedFile]:
    """
    Tout ou rien : chaque fichier est validé avant la première écriture,
    et un échec d'écriture supprime les fichiers déjà enregistrés.
    """
    if not files:
        raise ValidationError("Aucun fichier fourni.")
    rules = _kind(kind)
    contents = [await _read_valid(rules, f) for f in files]

    uploaded: list[UploadedFile] = []
    try:
        for file, content in zip(files, contents):
            uploaded.append(_write(kind, file, content))
    except OSError:
        for done in uploaded:
            (_directory(kind) / done.filename).unlink(missing_ok=True)
        raise
    return uploaded


async def store_profile_photo(db: Session, user: User, file: UploadFile) -> UploadedFile:
    """Enregistre la photo et la rattache à l'identité de l'appelant."""
    uploaded = await store_file("profile", file)
    with transaction(db):
        user.profile_photo = uploaded.url
    return uploaded


def resolve_path(kind: str, filename: str) -> Path:
    """
    Retourne le chemin d'un fichier stocké. Tout nom qui sortirait du
    dossier du type demandé est traité comme introuvable.
    """
    _kind(kind)
    directory = _directory(kind).resolve()
    path = (directory / filename).resolve()
    if path.parent != directory or not path.is_file():
        raise NotFoundError("Fichier introuvable.")
    return path
