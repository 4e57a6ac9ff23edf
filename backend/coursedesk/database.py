"""
Configuration de la connexion à la base de données PostgreSQL.
Utilise SQLAlchemy en mode synchrone.
"""

from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from coursedesk.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dépendance FastAPI : fournit une session BDD et la ferme après usage."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """
    Regroupe plusieurs écritures en une seule unité atomique.
    Commit à la sortie du bloc ; en cas d'exception, rollback puis propagation.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def utcnow() -> datetime:
    """Horodatage UTC naïf, cohérent avec les colonnes DateTime sans fuseau."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
