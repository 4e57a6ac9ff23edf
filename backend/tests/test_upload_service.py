"""
Tests du stockage des fichiers envoyés : types MIME, taille maximale,
nommage et résolution des chemins.
"""

import asyncio
import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from coursedesk.config import settings
from coursedesk.errors import NotFoundError, ValidationError
from coursedesk.services import upload_service
from factories import create_user


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


def make_upload(content=b"contenu", filename="photo.png", content_type="image/png"):
    return UploadFile(file=io.BytesIO(content), filename=filename, headers=Headers({"content-type": content_type}))


def test_store_file_ecrit_sur_disque(upload_dir):
    uploaded = asyncio.run(upload_service.store_file("materials", make_upload(
        b"%PDF-1.4", filename="Syllabus.PDF", content_type="application/pdf",
    )))

    assert uploaded.original_name == "Syllabus.PDF"
    assert uploaded.filename.endswith(".pdf")
    assert uploaded.size == 8
    assert uploaded.url == f"/api/uploads/materials/{uploaded.filename}"
    assert (upload_dir / "materials" / uploaded.filename).read_bytes() == b"%PDF-1.4"


def test_store_file_type_mime_refuse():
    with pytest.raises(ValidationError):
        asyncio.run(upload_service.store_file("profile", make_upload(content_type="application/pdf")))


def test_store_file_trop_volumineux(monkeypatch):
    monkeypatch.setitem(upload_service.UPLOAD_KINDS, "profile", upload_service.UploadKind(1, frozenset({"image/png"})))
    with pytest.raises(ValidationError):
        asyncio.run(upload_service.store_file("profile", make_upload(b"x" * (upload_service.MB + 1))))


def test_store_file_vide():
    with pytest.raises(ValidationError):
        asyncio.run(upload_service.store_file("messages", make_upload(b"")))


def test_store_file_type_d_envoi_inconnu():
    with pytest.raises(ValidationError):
        asyncio.run(upload_service.store_file("avatars", make_upload()))


def test_store_files_plusieurs_fichiers():
    uploaded = asyncio.run(upload_service.store_files("messages", [
        make_upload(filename="a.png"),
        make_upload(filename="b.mp3", content_type="audio/mpeg"),
    ]))

    assert len({u.filename for u in uploaded}) == 2


def test_store_files_un_fichier_refuse_n_ecrit_rien(upload_dir):
    with pytest.raises(ValidationError):
        asyncio.run(upload_service.store_files("messages", [
            make_upload(b"%PDF-1.4", filename="a.pdf", content_type="application/pdf"),
            make_upload(b"MZ", filename="b.exe", content_type="application/x-msdownload"),
        ]))

    assert not (upload_dir / "messages").exists()


def test_store_files_echec_d_ecriture_supprime_les_precedents(upload_dir, monkeypatch):
    real_write = upload_service._write
    written = []

    def write_once(kind, file, content):
        if written:
            raise OSError("disque plein")
        written.append(real_write(kind, file, content))
        return written[-1]

    monkeypatch.setattr(upload_service, "_write", write_once)

    with pytest.raises(OSError):
        asyncio.run(upload_service.store_files("messages", [
            make_upload(filename="a.png"),
            make_upload(filename="b.png"),
        ]))

    assert len(written) == 1
    assert list((upload_dir / "messages").iterdir()) == []


def test_store_profile_photo_met_a_jour_l_identite(db_session):
    user = create_user(db_session, "student")

    uploaded = asyncio.run(upload_service.store_profile_photo(db_session, user, make_upload()))

    db_session.refresh(user)
    assert user.profile_photo == uploaded.url


def test_resolve_path_fichier_existant():
    uploaded = asyncio.run(upload_service.store_file("profile", make_upload()))
    path = upload_service.resolve_path("profile", uploaded.filename)
    assert path.read_bytes() == b"contenu"


def test_resolve_path_traversee_refusee(upload_dir):
    (upload_dir / "secret.txt").write_text("confidentiel")
    (upload_dir / "profile").mkdir()

    with pytest.raises(NotFoundError):
        upload_service.resolve_path("profile", "../secret.txt")


def test_resolve_path_introuvable():
    with pytest.raises(NotFoundError):
        upload_service.resolve_path("profile", "absent.png")
