"""
Tests des rapports sur SQLite : agrégation, statut d'erreur, accès par
défaut, visibilité par rôle ou identité et archivage.
"""

import uuid
from unittest.mock import patch

import pytest
from pydantic import ValidationError as SchemaValidationError

from coursedesk.errors import ForbiddenError, ValidationError
from coursedesk.models.student import AcademicRecord
from coursedesk.schemas.report import ReportCreate, ReportUpdate
from coursedesk.services import report_aggregators, report_service
from factories import create_course, create_student, create_teacher, create_user


@pytest.fixture
def admin(db_session):
    return create_user(db_session, "admin")


@pytest.fixture
def prof(db_session):
    return create_user(db_session, "teacher")


def new_report(db, actor, kind="administrative", **kwargs):
    return report_service.create_report(db, actor, ReportCreate(title="Rapport", kind=kind, **kwargs))


# --- Validation des schémas ---

def test_report_type_inconnu_rejete():
    with pytest.raises(SchemaValidationError):
        ReportCreate(title="X", kind="secret")


def test_report_acces_role_inconnu_rejete():
    with pytest.raises(SchemaValidationError):
        ReportCreate(title="X", kind="custom", access_grants=[{"grant_kind": "role", "value": "parent"}])


def test_report_update_statut_autre_que_archive_rejete():
    with pytest.raises(SchemaValidationError):
        ReportUpdate(status="done")


# ============================================================
# create_report
# ============================================================

def test_create_report_administratif(db_session, admin):
    teacher = create_teacher(db_session)
    create_course(db_session, teacher.id, capacity=10)
    create_student(db_session)

    report = new_report(db_session, admin)

    assert report.status == "done"
    assert report.payload["students"] == 1
    assert report.payload["teachers"] == 1
    assert report.payload["courses_by_status"] == {"open_enrollment": 1}
    assert report.payload["total_capacity"] == 10
    assert [g.model_dump() for g in report.access_grants] == [{"grant_kind": "role", "value": "admin"}]


def test_create_report_performance(db_session, admin):
    teacher = create_teacher(db_session)
    course = create_course(db_session, teacher.id)
    alice = create_student(db_session, "Alice")
    bob = create_student(db_session, "Bob")
    db_session.add_all([
        AcademicRecord(student_id=alice.id, course_id=course.id, final_grade=16, status="passed"),
        AcademicRecord(student_id=bob.id, course_id=course.id, final_grade=8, status="failed"),
    ])
    db_session.commit()

    report = new_report(db_session, admin, kind="performance", params={"course_ids": [str(course.id)]})

    row = report.payload["courses"][0]
    assert row["average_grade"] == 12.0
    assert row["pass_rate"] == 50.0


def test_create_report_financier_sans_donnees(db_session, admin):
    report = new_report(db_session, admin, kind="financial")
    assert report.status == "done"
    assert report.payload["available"] is False


def test_create_report_echec_agregateur_statut_erreur(db_session, admin):
    def broken(db, params):
        raise RuntimeError("agrégation impossible")

    with patch.object(report_aggregators, "get_aggregator", return_value=broken):
        report = new_report(db_session, admin, kind="attendance")

    assert report.status == "error"
    assert report.error_message == "agrégation impossible"
    assert report.payload is None


def test_create_report_reference_introuvable(db_session, admin):
    with pytest.raises(ValidationError):
        new_report(db_session, admin, params={"course_ids": [str(uuid.uuid4())]})


def test_create_report_eleve_interdit(db_session):
    with pytest.raises(ForbiddenError):
        new_report(db_session, create_user(db_session, "student"))


# ============================================================
# Visibilité
# ============================================================

def test_rapport_invisible_sans_acces(db_session, admin, prof):
    report = new_report(db_session, admin)

    with pytest.raises(ForbiddenError):
        report_service.get_report(db_session, prof, report.id)
    assert report_service.list_reports(db_session, prof)["total"] == 0


def test_rapport_accorde_au_role(db_session, admin, prof):
    report = new_report(db_session, admin, access_grants=[{"grant_kind": "role", "value": "teacher"}])

    assert report_service.get_report(db_session, prof, report.id).id == report.id
    assert report_service.list_reports(db_session, prof)["total"] == 1


def test_rapport_accorde_a_une_identite(db_session, admin, prof):
    other = create_user(db_session, "teacher")
    report = new_report(db_session, admin, access_grants=[{"grant_kind": "identity", "value": str(prof.id)}])

    assert report_service.get_report(db_session, prof, report.id).id == report.id
    with pytest.raises(ForbiddenError):
        report_service.get_report(db_session, other, report.id)


def test_createur_voit_son_rapport(db_session, prof):
    report = new_report(db_session, prof, kind="custom", params={"filters": {"niveau": "B1"}})

    page = report_service.list_reports(db_session, prof, kind="custom")

    assert [r.id for r in page["items"]] == [report.id]
    assert page["items"][0].payload["filters"] == {"niveau": "B1"}


# ============================================================
# update / delete
# ============================================================

def test_update_report_archivage(db_session, prof):
    report = new_report(db_session, prof)

    result = report_service.update_report(db_session, prof, report.id, ReportUpdate(status="archived", title="Archivé"))

    assert result.status == "archived"
    assert result.title == "Archivé"
    assert result.payload == report.payload


def test_update_report_par_un_autre_interdit(db_session, admin, prof):
    report = new_report(db_session, admin, access_grants=[{"grant_kind": "role", "value": "teacher"}])
    with pytest.raises(ForbiddenError):
        report_service.update_report(db_session, prof, report.id, ReportUpdate(title="X"))


def test_delete_report(db_session, admin):
    report = new_report(db_session, admin)

    report_service.delete_report(db_session, admin, report.id)

    assert report_service.list_reports(db_session, admin)["total"] == 0
