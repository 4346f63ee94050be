# hk_loans/app/db/session.py
"""
Gestión de la conexión a la base de datos (SQLAlchemy).

Puntos clave:
- Construimos engine desde settings.resolve_database_url()
- Postgres: connect_args con connect_timeout y prepare_threshold=0
  (evita problemas con prepared statements detrás de poolers).
- SQLite (local/tests): check_same_thread=False, porque FastAPI ejecuta los
  endpoints síncronos en un threadpool.
- NullPool opcional: recomendado cuando pasas por pooler (PgBouncer).
"""

from __future__ import annotations

from urllib.parse import urlparse

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from hk_loans.app.core.config import settings


def _should_use_nullpool(db_url: str) -> bool:
    """
    Decide si usar NullPool.

    - Si DB_USE_NULLPOOL está activado.
    - Si detectamos el puerto típico de poolers (6543).
    """
    if settings.DB_USE_NULLPOOL:
        return True

    p = urlparse(db_url)
    try:
        port = p.port or 0
    except ValueError:
        port = 0
    return port == 6543


def build_engine_kwargs(db_url: str) -> dict:
    """kwargs de create_engine según el dialecto de la URL."""
    engine_kwargs: dict = dict(pool_pre_ping=True, future=True)

    if db_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        return engine_kwargs

    engine_kwargs["connect_args"] = {
        "connect_timeout": 10,
        # Importante: prepare_threshold DEBE ser int, no string.
        "prepare_threshold": 0,
    }
    if _should_use_nullpool(db_url):
        engine_kwargs["poolclass"] = NullPool
    return engine_kwargs


def enable_sqlite_foreign_keys(target_engine) -> None:
    """SQLite no aplica FKs (ni ON DELETE) salvo que se active por conexión."""

    @event.listens_for(target_engine, "connect")
    def _sqlite_fk_pragma(dbapi_connection, connection_record):
        cur = dbapi_connection.cursor()
        try:
            cur.execute("PRAGMA foreign_keys=ON")
        finally:
            cur.close()


# 1) Resolver URL final de BD
DATABASE_URL = settings.resolve_database_url()

# 2) Engine
engine = create_engine(DATABASE_URL, **build_engine_kwargs(DATABASE_URL))
if engine.dialect.name == "sqlite":
    enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def get_db():
    """
    Dependencia FastAPI:
    - abre sesión
    - cierra sesión al finalizar

    El commit/rollback lo decide cada endpoint (una sola unidad atómica
    por operación de negocio).
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
