"""
Service métier pour les rapports.

Le contenu d'un rapport est calculé de façon synchrone à la création par
l'agrégateur enregistré pour son type (voir report_aggregators).
"""

import logging
import uuid
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from coursedesk.database import transaction
from coursedesk.errors import NotFoundError, ValidationError
from coursedesk.models.course import Course
from coursedesk.models.report import Report, ReportAccessGrant
from coursedesk.models.student import StudentProfile
from coursedesk.models.teacher import TeacherProfile
from coursedesk.models.user import User
from coursedesk.policy import ADMIN, authorize
from coursedesk.schemas.common import make_page
from coursedesk.schemas.report import AccessGrant, ReportCreate, ReportResponse, ReportUpdate
from coursedesk.services import report_aggregators

logger = logging.getLogger(__name__)

DEFAULT_GRANTS = [{"grant_kind": "role", "value": ADMIN}]


def _grants(db: Session, report_id: uuid.UUID) -> list[dict]:
    rows = db.execute(
        select(ReportAccessGrant).where(ReportAccessGrant.report_id == report_id)
    ).scalars().all()
    return [{"grant_kind": g.grant_kind, "value": g.value} for g in rows]


def _facts(db: Session, report: Report) -> dict:
    return {"creator_id": report.creator_id, "grants": _grants(db, report.id)}


def _to_response(db: Session, report: Report) -> ReportResponse:
    return ReportResponse(
        id=report.id,
        title=report.title,
        description=report.description,
        kind=report.kind,
        format=report.format,
        params=report.params or {},
        payload=report.payload,
        status=report.status,
        error_message=report.error_message,
        creator_id=report.creator_id,
        access_grants=_grants(db, report.id),
        generated_at=report.generated_at,
        created_at=report.created_at,
    )


def _load(db: Session, report_id: uuid.UUID) -> Report:
    report = db.get(Report, report_id)
    if report is None:
        raise NotFoundError("Rapport introuvable.")
    return report


def _ensure_exist(db: Session, model, ids: list[uuid.UUID], label: str) -> None:
    wanted = set(ids)
    if not wanted:
        return
    found = set(db.execute(select(model.id).where(model.id.in_(wanted))).scalars().all())
    if wanted - found:
        raise ValidationError(f"Un ou plusieurs {label} référencés sont introuvables.")


def _replace_grants(db: Session, report_id: uuid.UUID, grants: list[AccessGrant]) -> None:
    db.execute(delete(ReportAccessGrant).where(ReportAccessGrant.report_id == report_id))
    for grant in grants:
        db.add(ReportAccessGrant(report_id=report_id, grant_kind=grant.grant_kind, value=grant.value))


def list_reports(
    db: Session,
    actor: User,
    page: int = 1,
    limit: int = 10,
    kind: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> dict:
    """
    Liste paginée. Un non-administrateur ne voit que ses rapports et ceux
    accordés à son rôle ou à son identité.
    """
    authorize(actor, "report:list")

    query = select(Report)
    if kind:
        query = query.where(Report.kind == kind)
    if start:
        query = query.where(Report.generated_at >= datetime.combine(start, time.min))
    if end:
        query = query.where(Report.generated_at <= datetime.combine(end, time.max))
    if actor.role != ADMIN:
        granted = select(ReportAccessGrant.report_id).where(
            or_(
                (ReportAccessGrant.grant_kind == "role") & (ReportAccessGrant.value == actor.role),
                (ReportAccessGrant.grant_kind == "identity") & (ReportAccessGrant.value == str(actor.id)),
            )
        )
        query = query.where(or_(Report.creator_id == actor.id, Report.id.in_(granted)))

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    reports = db.execute(
        query.order_by(Report.generated_at.desc()).offset((page - 1) * limit).limit(limit)
    ).scalars().all()
    return make_page([_to_response(db, r) for r in reports], total, page, limit)


def get_report(db: Session, actor: User, report_id: uuid.UUID) -> ReportResponse:
    report = _load(db, report_id)
    authorize(actor, "report:read", _facts(db, report), "Vous n'avez pas accès à ce rapport.")
    return _to_response(db, report)


def create_report(db: Session, actor: User, data: ReportCreate) -> ReportResponse:
    """
    Valide les entités référencées, calcule le contenu via l'agrégateur du
    type demandé puis enregistre le rapport. Un échec de l'agrégateur donne
    un rapport au statut 'error' plutôt qu'une erreur HTTP.
    """
    authorize(actor, "report:create")
    params = data.params
    _ensure_exist(db, Course, params.course_ids, "cours")
    _ensure_exist(db, StudentProfile, params.student_ids, "élèves")
    _ensure_exist(db, TeacherProfile, params.teacher_ids, "enseignants")

    stored_params = params.model_dump(mode="json")
    report = Report(
        title=data.title,
        description=data.description,
        kind=data.kind,
        format=data.format,
        params=stored_params,
        status="processing",
        creator_id=actor.id,
    )

    aggregator = report_aggregators.get_aggregator(data.kind)
    try:
        if aggregator is None:
            raise LookupError(f"Aucun agrégateur pour le type '{data.kind}'.")
        report.payload = aggregator(db, stored_params)
        report.status = "done"
    except Exception as exc:
        logger.error("Échec de la génération du rapport '%s' : %s", data.title, exc, exc_info=True)
        db.rollback()
        report.payload = None
        report.status = "error"
        report.error_message = str(exc)

    grants = data.access_grants if data.access_grants is not None else [
        AccessGrant(**g) for g in DEFAULT_GRANTS
    ]
    with transaction(db):
        db.add(report)
        db.flush()
        _replace_grants(db, report.id, grants)

    db.refresh(report)
    logger.info("Rapport %s généré (%s, statut %s)", report.id, report.kind, report.status)
    return _to_response(db, report)


def update_report(db: Session, actor: User, report_id: uuid.UUID, data: ReportUpdate) -> ReportResponse:
    """Seules les métadonnées sont modifiables : titre, description, accès et archivage."""
    report = _load(db, report_id)
    authorize(actor, "report:mutate", _facts(db, report),
              "Seuls l'administrateur et le créateur peuvent modifier ce rapport.")
    update_data = data.model_dump(exclude_unset=True)

    with transaction(db):
        for field in ("title", "description", "status"):
            if field in update_data and update_data[field] is not None:
                setattr(report, field, update_data[field])
        if data.access_grants is not None:
            _replace_grants(db, report.id, data.access_grants)

    db.refresh(report)
    return _to_response(db, report)


def delete_report(db: Session, actor: User, report_id: uuid.UUID) -> None:
    report = _load(db, report_id)
    authorize(actor, "report:mutate", _facts(db, report),
              "Seuls l'administrateur et le créateur peuvent supprimer ce rapport.")
    with transaction(db):
        db.execute(delete(ReportAccessGrant).where(ReportAccessGrant.report_id == report.id))
        db.delete(report)
    logger.info("Rapport %s supprimé", report_id)
