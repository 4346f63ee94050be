# hk_loans/app/core/config.py
"""
Configuración central del backend de HK Loans.

Objetivos del diseño:
1) Evitar credenciales "hardcodeadas" en código (el SECRET_KEY es obligatorio).
2) Tener UNA fuente de verdad para la BD en runtime: DATABASE_URL.
3) Normalizar la URL de Postgres:
   - driver psycopg (no psycopg2)
   - sslmode (require por defecto)
4) Agrupar los límites de subida de documentos y los flags de arranque.

NOTA práctica:
- No pongas valores entre comillas en el entorno del hosting.
  Si pones DATABASE_URL="postgresql+..." las comillas forman parte del valor
  (de todas formas las quitamos con _strip_wrapping_quotes).
"""

from __future__ import annotations

import re
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def _strip_wrapping_quotes(value: str) -> str:
    """
    Elimina comillas envolventes si el usuario las puso en el .env.
    Ej: '"abc"' -> 'abc'
    """
    v = (value or "").strip()
    if len(v) >= 2 and ((v[0] == v[-1] == '"') or (v[0] == v[-1] == "'")):
        return v[1:-1].strip()
    return v


def _is_postgres(url: str) -> bool:
    return url.startswith("postgresql") or url.startswith("postgres://")


def _ensure_psycopg_driver(url: str) -> str:
    """
    Fuerza a usar psycopg3 en SQLAlchemy:
    - postgres://...                  -> postgresql+psycopg://...
    - postgresql://...                -> postgresql+psycopg://...
    - postgresql+psycopg2://...       -> postgresql+psycopg://...
    """
    u = url.strip()
    u = re.sub(r"^postgres://", "postgresql+psycopg://", u)
    u = re.sub(r"^postgresql\+psycopg2://", "postgresql+psycopg://", u)
    u = re.sub(r"^postgresql://", "postgresql+psycopg://", u)
    return u


def _append_query_param(url: str, key: str, value: str) -> str:
    """
    Añade un query param si no existe ya.
    """
    if re.search(rf"(^|[?&]){re.escape(key)}=", url):
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{key}={value}"


def _csv_to_list(value: str) -> List[str]:
    """
    Convierte 'a,b,c' -> ['a','b','c'] ignorando vacíos.
    """
    v = (value or "").strip()
    if not v:
        return []
    return [x.strip() for x in v.split(",") if x.strip()]


class Settings(BaseSettings):
    """
    Ajustes de la aplicación.

    BaseSettings lee variables de entorno (y .env) y valida tipos:
    todo llega como string y Pydantic convierte a int/bool/etc.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---- entorno general
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "standard"  # "standard" o "json"

    # ---- seguridad / JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    BCRYPT_ROUNDS: int = 12

    # ---- CORS (CSV: "http://a,http://b"). Vacío -> "*"
    CORS_ORIGINS: str = ""

    # ---- base de datos
    DATABASE_URL: str = "sqlite:///./hk_loans.db"
    DB_SSLMODE: str = "require"
    DB_USE_NULLPOOL: bool = False

    # ---- arranque
    BOOTSTRAP_CREATE_ALL: bool = False
    BOOTSTRAP_ADMIN_USERNAME: str = ""
    BOOTSTRAP_ADMIN_PASSWORD: str = ""

    # ---- documentos de clientes
    UPLOAD_DIR: str = "./uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    MAX_UPLOAD_MB: int = 5
    ALLOWED_UPLOAD_TYPES: str = "image/jpeg,image/png,application/pdf"

    # ---- limpieza de caja al borrar un préstamo
    # Las transacciones antiguas no tienen loan_id: se localizan por el
    # nombre del cliente en la descripción (heurística heredada).
    LEGACY_TRANSACTION_NAME_CLEANUP: bool = True

    # ---- pasarela de pago: sin integrar, solo se reserva la configuración
    PAYMENT_GATEWAY_PROVIDER: str = ""
    PAYMENT_GATEWAY_API_KEY: str = ""

    @property
    def cors_origins_list(self) -> List[str]:
        return _csv_to_list(self.CORS_ORIGINS) or ["*"]

    @property
    def allowed_upload_types_list(self) -> List[str]:
        return [t.lower() for t in _csv_to_list(self.ALLOWED_UPLOAD_TYPES)]

    @property
    def max_upload_bytes(self) -> int:
        return int(self.MAX_UPLOAD_MB) * 1024 * 1024

    def resolve_database_url(self) -> str:
        """
        Devuelve la URL final de BD.

        - Postgres: se normaliza driver (psycopg3) y sslmode.
        - Cualquier otra (SQLite en local/tests): se usa tal cual.
        """
        url = _strip_wrapping_quotes(self.DATABASE_URL or "")
        if not url:
            raise RuntimeError("No hay URL de base de datos. Define DATABASE_URL.")

        if _is_postgres(url):
            url = _ensure_psycopg_driver(url)
            if self.DB_SSLMODE:
                url = _append_query_param(url, "sslmode", self.DB_SSLMODE)
        return url


# Instancia global
settings = Settings()
