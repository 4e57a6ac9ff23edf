"""
Tests d'intégration API pour les élèves : enveloppe de réponse,
authentification, contrôle des rôles et validation.
Les services sont remplacés par des mocks ; la BDD est un MagicMock.
"""

import uuid
from datetime import date, datetime
from unittest.mock import patch

from coursedesk.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from coursedesk.schemas.common import make_page
from coursedesk.schemas.student import StudentCourseResponse, StudentDetailResponse, StudentResponse

SERVICE = "coursedesk.routers.students.student_service"


# --- Helpers ---

def make_student_response(**kwargs) -> StudentResponse:
    return StudentResponse(
        id=kwargs.get("id", uuid.uuid4()),
        user_id=kwargs.get("user_id", uuid.uuid4()),
        full_name=kwargs.get("full_name", "Alice Martin"),
        email=kwargs.get("email", "alice.martin@ecole.be"),
        active=True,
        enrollment_number=kwargs.get("enrollment_number", "MAT-001"),
        created_at=datetime(2026, 9, 1, 8, 0),
    )


VALID_BODY = {
    "full_name": "Alice Martin",
    "email": "alice.martin@ecole.be",
    "password": "secret123",
    "enrollment_number": "MAT-001",
}


# --- GET /api/students ---

class TestListStudents:
    def test_sans_jeton_401(self, client):
        resp = client.get("/api/students")

        assert resp.status_code == 401
        assert resp.json()["status"] == "error"

    def test_page_enveloppee(self, client, login_as):
        login_as("admin")
        items = [make_student_response(full_name="Alice"), make_student_response(full_name="Bruno")]

        with patch(f"{SERVICE}.list_students", return_value=make_page(items, 12, 2, 2)) as mock_list:
            resp = client.get("/api/students?page=2&limit=2&name=a")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "success"
        assert [s["full_name"] for s in body["data"]["items"]] == ["Alice", "Bruno"]
        assert body["data"]["total_pages"] == 6
        assert mock_list.call_args.args[2:] == (2, 2, "a", None)

    def test_eleve_refuse_403(self, client, login_as):
        login_as("student")
        with patch(f"{SERVICE}.list_students", side_effect=ForbiddenError()):
            resp = client.get("/api/students")
        assert resp.status_code == 403

    def test_limite_hors_bornes_400(self, client, login_as):
        login_as("admin")
        resp = client.get("/api/students?limit=500")

        assert resp.status_code == 400
        assert "query.limit" in resp.json()["errors"]


# --- POST /api/students ---

class TestCreateStudent:
    def test_creation_201(self, client, login_as):
        login_as("admin")
        with patch(f"{SERVICE}.create_student", return_value=make_student_response()):
            resp = client.post("/api/students", json=VALID_BODY)

        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Élève créé."
        assert body["data"]["enrollment_number"] == "MAT-001"
        assert "password" not in body["data"]

    def test_enseignant_refuse_403(self, client, login_as):
        login_as("teacher")
        with patch(f"{SERVICE}.create_student") as mock_create:
            resp = client.post("/api/students", json=VALID_BODY)

        assert resp.status_code == 403
        mock_create.assert_not_called()

    def test_email_invalide_400(self, client, login_as):
        login_as("admin")
        resp = client.post("/api/students", json={**VALID_BODY, "email": "pas-un-email"})

        assert resp.status_code == 400
        assert "email" in resp.json()["errors"]

    def test_mot_de_passe_trop_court_400(self, client, login_as):
        login_as("admin")
        resp = client.post("/api/students", json={**VALID_BODY, "password": "123"})
        assert resp.status_code == 400

    def test_email_duplique_409(self, client, login_as):
        login_as("admin")
        with patch(f"{SERVICE}.create_student", side_effect=ConflictError("Cet email est déjà utilisé.")):
            resp = client.post("/api/students", json=VALID_BODY)

        assert resp.status_code == 409
        assert resp.json() == {"status": "error", "message": "Cet email est déjà utilisé."}


# --- GET / PUT / DELETE /api/students/{id} ---

class TestStudentDetail:
    def test_detail(self, client, login_as):
        login_as("teacher")
        student = make_student_response()
        detail = StudentDetailResponse(**student.model_dump(), enrollments=[StudentCourseResponse(
            course_id=uuid.uuid4(), course_name="Algèbre", course_status="active",
            start_date=date(2026, 9, 1), end_date=date(2027, 1, 31),
            enrolled_at=datetime(2026, 8, 20), status="active",
        )])

        with patch(f"{SERVICE}.get_student", return_value=detail):
            resp = client.get(f"/api/students/{student.id}")

        assert resp.status_code == 200
        assert resp.json()["data"]["enrollments"][0]["course_name"] == "Algèbre"

    def test_identifiant_mal_forme_400(self, client, login_as):
        login_as("admin")
        assert client.get("/api/students/pas-un-uuid").status_code == 400

    def test_introuvable_404(self, client, login_as):
        login_as("admin")
        with patch(f"{SERVICE}.get_student", side_effect=NotFoundError("Élève introuvable.")):
            resp = client.get(f"/api/students/{uuid.uuid4()}")

        assert resp.status_code == 404
        assert resp.json()["message"] == "Élève introuvable."

    def test_mise_a_jour_admin(self, client, login_as):
        login_as("admin")
        with patch(f"{SERVICE}.update_student", return_value=make_student_response(full_name="Nouveau")) as mock_update:
            resp = client.put(f"/api/students/{uuid.uuid4()}", json={"full_name": "Nouveau"})

        assert resp.status_code == 200
        assert resp.json()["data"]["full_name"] == "Nouveau"
        assert mock_update.call_args.args[2].model_dump(exclude_unset=True) == {"full_name": "Nouveau"}

    def test_mise_a_jour_nom_null_400(self, client, login_as):
        login_as("admin")
        resp = client.put(f"/api/students/{uuid.uuid4()}", json={"full_name": None})

        assert resp.status_code == 400
        assert "full_name" in resp.json()["errors"]

    def test_mise_a_jour_eleve_refusee(self, client, login_as):
        login_as("student")
        resp = client.put(f"/api/students/{uuid.uuid4()}", json={"full_name": "Moi"})
        assert resp.status_code == 403

    def test_suppression(self, client, login_as):
        login_as("admin")
        with patch(f"{SERVICE}.delete_student") as mock_delete:
            resp = client.delete(f"/api/students/{uuid.uuid4()}")

        assert resp.status_code == 200
        assert resp.json() == {"status": "success", "data": None, "message": "Élève supprimé."}
        mock_delete.assert_called_once()

    def test_suppression_inscription_active_400(self, client, login_as):
        login_as("admin")
        with patch(f"{SERVICE}.delete_student", side_effect=ValidationError("Inscription active.")):
            resp = client.delete(f"/api/students/{uuid.uuid4()}")
        assert resp.status_code == 400

    def test_cours_filtre_statut(self, client, login_as):
        user = login_as("student")
        student_id = uuid.uuid4()
        with patch(f"{SERVICE}.get_student_courses", return_value=[]) as mock_courses:
            resp = client.get(f"/api/students/{student_id}/courses?status=active")

        assert resp.status_code == 200
        assert resp.json()["data"] == []
        mock_courses.assert_called_once()
        assert mock_courses.call_args.args[1:] == (user, student_id, "active")
