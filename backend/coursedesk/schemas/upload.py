"""
Schémas Pydantic pour les fichiers envoyés.
"""

from pydantic import BaseModel


class UploadedFile(BaseModel):
    original_name: str
    filename: str
    mime_type: str
    size: int
    url: str
