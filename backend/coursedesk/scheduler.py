"""
Planificateur APScheduler pour les tâches d'entretien.

Le job s'exécute toutes les heures et efface les jetons de
réinitialisation de mot de passe expirés.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import SQLAlchemyError

from coursedesk.database import SessionLocal

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def purge_reset_tokens_job() -> None:
    """
    Tâche planifiée : efface les jetons de réinitialisation expirés.
    Import local pour éviter les imports circulaires.
    """
    from coursedesk.services.auth_service import purge_expired_reset_tokens

    db = SessionLocal()
    try:
        count = purge_expired_reset_tokens(db)
        if count:
            logger.info("%d jeton(s) de réinitialisation expiré(s) effacé(s).", count)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Erreur lors de la purge des jetons de réinitialisation : %s", exc)
    finally:
        db.close()


def start_scheduler() -> None:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler.add_job(
        purge_reset_tokens_job,
        trigger="interval",
        hours=1,
        id="purge_expired_reset_tokens",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler démarré, purge des jetons expirés toutes les heures.")


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
