# hk_loans/app/main.py

"""
Punto de entrada del backend de HK Loans.

Aquí definimos:
- La instancia de FastAPI.
- CORS.
- Endpoints base: /, /health, /ready.
- Arranque: logging, create_all opcional y admin inicial opcional.
- Routers de negocio (api/v1).

IMPORTANTE:
- Cargamos .env antes de importar settings / engine.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

# ---------------------------------------------------------------------------
# 0) Variables de entorno (.env) ANTES de importar engine
# ---------------------------------------------------------------------------
from dotenv import load_dotenv

ROOT_ENV = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ROOT_ENV if ROOT_ENV.is_file() else None)

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text as sa_text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hk_loans.app.core.config import settings
from hk_loans.app.core.constants import Role
from hk_loans.app.core.logging import setup_logging
from hk_loans.app.db import models
from hk_loans.app.db.base import Base
from hk_loans.app.db.session import SessionLocal, engine, get_db

setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 1) Arranque
# ---------------------------------------------------------------------------
def bootstrap_admin(db: Session) -> None:
    """
    Crea el usuario ADMIN inicial si BOOTSTRAP_ADMIN_USERNAME/PASSWORD
    están definidos y todavía no existe.
    """
    from hk_loans.app.api.v1.auth_router import hash_password
    from hk_loans.app.utils.text_utils import normalize_username

    username = normalize_username(settings.BOOTSTRAP_ADMIN_USERNAME)
    if not username or not settings.BOOTSTRAP_ADMIN_PASSWORD:
        return
    if db.query(models.User).filter(models.User.username == username).first():
        return

    db.add(
        models.User(
            username=username,
            password=hash_password(settings.BOOTSTRAP_ADMIN_PASSWORD),
            name="Administrador",
            role=Role.ADMIN,
            active=True,
        )
    )
    db.commit()
    logger.info("[startup] admin user created username=%s", username)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info("[startup] env=%s db=%s", settings.ENV, engine.dialect.name)

    if settings.BOOTSTRAP_CREATE_ALL:
        Base.metadata.create_all(bind=engine)
        logger.info("[startup] create_all done")

    try:
        with SessionLocal() as db:
            db.execute(sa_text("SELECT 1"))
            bootstrap_admin(db)
    except SQLAlchemyError:
        logger.exception("[startup] database check failed")

    yield


# ---------------------------------------------------------------------------
# 2) Generador de operation_id únicos
# ---------------------------------------------------------------------------
def custom_generate_unique_id(route: APIRoute) -> str:
    """operation_id estable para OpenAPI: <tag>_<route.name>."""
    tag_prefix = route.tags[0] if route.tags else "default"
    return f"{tag_prefix}_{route.name}"


# ---------------------------------------------------------------------------
# 3) App + CORS
# ---------------------------------------------------------------------------
app = FastAPI(
    title="HK Loans API",
    version="1.0.0",
    description="Back office multi-tenant de préstamos: clientes, parcelas, caja y dashboard.",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)

origins = settings.cors_origins_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials="*" not in origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# 4) Endpoints básicos
# ---------------------------------------------------------------------------
@app.get("/", tags=["core"])
def root() -> dict:
    return {"message": "HK Loans backend is running"}


@app.get("/health", tags=["core"])
def health_simple() -> dict:
    """Servidor vivo (sin tocar BD)."""
    return {"status": "ok"}


@app.get("/ready", tags=["core"])
def ready(db: Session = Depends(get_db)) -> dict:
    """Servidor vivo + BD accesible."""
    try:
        db.execute(sa_text("SELECT 1"))
        return {"status": "ok", "db": "reachable"}
    except SQLAlchemyError as e:
        logger.warning("[ready] database unreachable: %s", e)
        return {"status": "error", "db": "unreachable"}


# ---------------------------------------------------------------------------
# 5) Routers de negocio (v1)
# ---------------------------------------------------------------------------
from hk_loans.app.api.v1 import (
    admin_router,
    auth_router,
    clients_router,
    dashboard_router,
    documents_router,
    installments_router,
    loans_router,
    partners_router,
    transactions_router,
)

API_V1 = "/api/v1"

app.include_router(auth_router.router,         prefix=API_V1)
app.include_router(clients_router.router,      prefix=API_V1)
app.include_router(documents_router.router,    prefix=API_V1)
app.include_router(partners_router.router,     prefix=API_V1)
app.include_router(loans_router.router,        prefix=API_V1)
app.include_router(installments_router.router, prefix=API_V1)
app.include_router(transactions_router.router, prefix=API_V1)
app.include_router(dashboard_router.router,    prefix=API_V1)
app.include_router(admin_router.router,        prefix=API_V1)

# Documentos de clientes guardados en local (UPLOAD_DIR)
app.mount(
    settings.UPLOAD_URL_PREFIX.rstrip("/") or "/uploads",
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)
