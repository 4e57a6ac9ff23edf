"""
Router d'envoi et de consultation des fichiers.
"""

from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from coursedesk.database import get_db
from coursedesk.dependencies import get_current_user
from coursedesk.models.user import User
from coursedesk.rate_limit import rate_limit
from coursedesk.schemas.common import ApiResponse, ok
from coursedesk.schemas.upload import UploadedFile
from coursedesk.services import upload_service

router = APIRouter(
    prefix="/api/uploads",
    tags=["Fichiers"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.post("/profile", response_model=ApiResponse[UploadedFile], status_code=201, summary="Photo de profil")
async def upload_profile(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Image jpeg, png ou webp de 2 Mo maximum. Remplace la photo de l'appelant."""
    return ok(await upload_service.store_profile_photo(db, user, file), "Photo de profil mise à jour.")


@router.post(
    "/materials",
    response_model=ApiResponse[List[UploadedFile]],
    status_code=201,
    summary="Supports de cours",
)
async def upload_materials(files: List[UploadFile] = File(...), _: User = Depends(get_current_user)):
    """Documents bureautiques, pdf, texte, zip, mp4 ou images de 20 Mo maximum chacun."""
    return ok(await upload_service.store_files("materials", files), "Fichiers enregistrés.")


@router.post(
    "/messages",
    response_model=ApiResponse[List[UploadedFile]],
    status_code=201,
    summary="Pièces jointes de messages",
)
async def upload_message_attachments(files: List[UploadFile] = File(...), _: User = Depends(get_current_user)):
    """Images, gif, pdf, mp3, wav ou mp4 de 10 Mo maximum chacun."""
    return ok(await upload_service.store_files("messages", files), "Fichiers enregistrés.")


@router.get("/{kind}/{filename}", summary="Télécharger un fichier")
def download(kind: str, filename: str, _: User = Depends(get_current_user)):
    return FileResponse(upload_service.resolve_path(kind, filename))
