"""
Router pour les rapports générés.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from coursedesk.database import get_db
from coursedesk.dependencies import get_current_user
from coursedesk.models.user import User
from coursedesk.rate_limit import rate_limit
from coursedesk.schemas.common import ApiResponse, Page, ok
from coursedesk.schemas.report import ReportCreate, ReportResponse, ReportUpdate
from coursedesk.services import report_service

router = APIRouter(
    prefix="/api/reports",
    tags=["Rapports"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.get("", response_model=ApiResponse[Page[ReportResponse]], summary="Lister les rapports")
def list_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    kind: Optional[str] = None,
    start: Optional[date] = Query(None, description="Générés à partir de cette date"),
    end: Optional[date] = Query(None, description="Générés jusqu'à cette date"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(report_service.list_reports(db, user, page, limit, kind, start, end))


@router.post("", response_model=ApiResponse[ReportResponse], status_code=201, summary="Générer un rapport")
def create_report(data: ReportCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Le contenu est calculé immédiatement. Un échec de calcul donne un rapport au statut 'error'."""
    return ok(report_service.create_report(db, user, data), "Rapport généré.")


@router.get("/{report_id}", response_model=ApiResponse[ReportResponse], summary="Détail d'un rapport")
def get_report(report_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return ok(report_service.get_report(db, user, report_id))


@router.put("/{report_id}", response_model=ApiResponse[ReportResponse], summary="Modifier un rapport")
def update_report(
    report_id: uuid.UUID,
    data: ReportUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return ok(report_service.update_report(db, user, report_id, data), "Rapport mis à jour.")


@router.delete("/{report_id}", response_model=ApiResponse[None], summary="Supprimer un rapport")
def delete_report(report_id: uuid.UUID, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    report_service.delete_report(db, user, report_id)
    return ok(message="Rapport supprimé.")
