"""
Point d'entrée principal de l'API CourseDesk.
Démarrage : uvicorn coursedesk.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

import coursedesk.models  # noqa: F401  enregistre tous les modèles dans Base.metadata avant les routers
from coursedesk.config import settings
from coursedesk.errors import AppError, RateLimitError
from coursedesk.notifications import NotificationHub
from coursedesk.routers import auth, calendar, conversations, courses, reports, students, teachers, uploads, ws
from coursedesk.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie de l'application : hub de notifications et scheduler APScheduler."""
    app.state.notification_hub = NotificationHub()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="CourseDesk API",
    description="API d'administration académique : élèves, enseignants, cours, inscriptions, calendrier, messagerie et rapports",
    version=VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)
# Disponible aussi sans lifespan (TestClient utilisé hors bloc with)
app.state.notification_hub = NotificationHub()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(auth.router)
app.include_router(students.router)
app.include_router(teachers.router)
app.include_router(courses.router)
app.include_router(calendar.router)
app.include_router(conversations.router)
app.include_router(reports.router)
app.include_router(uploads.router)
app.include_router(ws.router)


def _error(status_code: int, message: str, errors=None, headers=None, **extra) -> JSONResponse:
    content = {"status": "error", "message": message}
    if errors:
        content["errors"] = errors
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Erreurs opérationnelles levées par les services : renvoyées telles quelles."""
    if isinstance(exc, RateLimitError):
        return _error(
            exc.status_code,
            exc.message,
            headers={"Retry-After": str(exc.retry_after)},
            retry_after=exc.retry_after,
        )
    return _error(exc.status_code, exc.message, exc.errors)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Données de requête invalides : 400, erreurs indexées par emplacement du champ."""
    errors = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"] if part != "body") or "body"
        errors[location] = error["msg"]
    return _error(400, "Données invalides.", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Violation de contrainte d'intégrité : %s", exc.orig)
    return _error(409, "Conflit d'unicité : cette ressource existe déjà.")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    Aucun détail interne n'est renvoyé au client.
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return _error(500, "Une erreur interne est survenue.")


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "CourseDesk API", "version": VERSION}
