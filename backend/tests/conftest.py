"""
Configuration partagée pour tous les tests.

- client : get_db remplacé par un MagicMock, aucune connexion réelle.
- login_as : remplace get_current_user par une identité factice du rôle donné.
- db_session / session_factory : vraie base SQLite (un fichier par test).
- sqlite_client : client HTTP branché sur la base SQLite, jetons réels.
"""

import os

# Avant tout import de l'application : pas de PostgreSQL, pas de scheduler, bcrypt rapide
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENV", "development")

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from coursedesk import rate_limit
from coursedesk.database import Base, get_db
from coursedesk.dependencies import get_current_user
from coursedesk.main import app
from factories import make_user


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Chaque test démarre avec des seaux pleins."""
    rate_limit.reset()
    yield
    rate_limit.reset()


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """login_as("teacher") → identité factice injectée comme utilisateur courant."""

    def _login(role="admin", user_id=None):
        user = make_user(role, user_id)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login


# --- Base SQLite réelle ---

@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'coursedesk_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def sqlite_client(session_factory):
    """Client HTTP sur la base SQLite : une session par requête, authentification réelle."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
