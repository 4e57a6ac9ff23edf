"""
Tests d'intégration API pour le calendrier.
"""

import uuid
from datetime import datetime
from unittest.mock import patch

from coursedesk.errors import ForbiddenError
from coursedesk.schemas.calendar import EventResponse

SERVICE = "coursedesk.routers.calendar.calendar_service"


def make_event(**kwargs) -> EventResponse:
    return EventResponse(
        id=uuid.uuid4(),
        title=kwargs.get("title", "Examen d'algèbre"),
        start_at=datetime(2026, 12, 15, 9, 0),
        end_at=datetime(2026, 12, 15, 12, 0),
        type=kwargs.get("type", "exam"),
        all_day=False,
        color="#3788d8",
        creator_id=uuid.uuid4(),
    )


class TestCalendar:
    def test_fenetre_convertie_en_utc(self, client, login_as):
        login_as("student")
        with patch(f"{SERVICE}.list_events", return_value=[make_event()]) as mock_list:
            resp = client.get("/api/calendar", params={
                "start": "2026-12-01T00:00:00+01:00",
                "end": "2026-12-31T23:59:59+01:00",
                "type": "exam",
            })

        assert resp.status_code == 200
        assert resp.json()["data"][0]["type"] == "exam"
        start, end, event_type, course_id = mock_list.call_args.args[1:]
        assert start == datetime(2026, 11, 30, 23, 0)
        assert end == datetime(2026, 12, 31, 22, 59, 59)
        assert event_type == "exam"
        assert course_id is None

    def test_creation_201(self, client, login_as):
        login_as("teacher")
        with patch(f"{SERVICE}.create_event", return_value=make_event()):
            resp = client.post("/api/calendar", json={
                "title": "Examen d'algèbre",
                "start_at": "2026-12-15T09:00:00",
                "end_at": "2026-12-15T12:00:00",
                "type": "exam",
                "recurrence": {"frequency": "weekly", "weekdays": [1, 3]},
            })
        assert resp.status_code == 201

    def test_creation_recurrence_invalide_400(self, client, login_as):
        login_as("teacher")
        resp = client.post("/api/calendar", json={
            "title": "Cours",
            "start_at": "2026-12-15T09:00:00",
            "end_at": "2026-12-15T12:00:00",
            "type": "class",
            "recurrence": {"frequency": "hourly"},
        })
        assert resp.status_code == 400

    def test_modification_par_un_autre_403(self, client, login_as):
        login_as("teacher")
        with patch(f"{SERVICE}.update_event", side_effect=ForbiddenError("Pas votre événement.")):
            resp = client.put(f"/api/calendar/{uuid.uuid4()}", json={"title": "X"})
        assert resp.status_code == 403

    def test_modification_titre_null_400(self, client, login_as):
        login_as("teacher")
        resp = client.put(f"/api/calendar/{uuid.uuid4()}", json={"title": None})

        assert resp.status_code == 400
        assert "title" in resp.json()["errors"]

    def test_suppression(self, client, login_as):
        login_as("admin")
        with patch(f"{SERVICE}.delete_event") as mock_delete:
            resp = client.delete(f"/api/calendar/{uuid.uuid4()}")

        assert resp.status_code == 200
        mock_delete.assert_called_once()

    def test_evenements_d_un_cours(self, client, login_as):
        login_as("student")
        course_id = uuid.uuid4()
        with patch(f"{SERVICE}.list_course_events", return_value=[]) as mock_list:
            resp = client.get(f"/api/calendar/course/{course_id}")

        assert resp.status_code == 200
        assert mock_list.call_args.args[1] == course_id
