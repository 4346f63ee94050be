"""
Autenticación de HK Loans.

Endpoints:
- POST /api/v1/register -> alta de un tenant (rol USER)
- POST /api/v1/login    -> devuelve token (JWT) + nombre + rol
- GET  /api/v1/me       -> datos del usuario autenticado

Reglas:
- Token tipo Bearer (Authorization: Bearer <token>).
- El token lleva el id de usuario en 'sub' y el rol en 'role'.
- Sin token -> 401. Token inválido o expirado -> 403.
- Usuario inexistente o inactivo -> 403.
- Rutas de admin: además exigen role == ADMIN (403 si no).

El user_id que usan los routers de negocio sale SIEMPRE de aquí (nunca de
un parámetro enviado por el cliente).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from passlib.hash import bcrypt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hk_loans.app.core.config import settings
from hk_loans.app.core.constants import Role
from hk_loans.app.db import models
from hk_loans.app.db.session import get_db
from hk_loans.app.schemas.auth import LoginIn, RegisterIn, TokenOut, UserOut
from hk_loans.app.utils.text_utils import normalize_username

logger = logging.getLogger(__name__)

# ---------- Router ----------
router = APIRouter(tags=["auth"])
security = HTTPBearer(auto_error=False)


# ---------- Helpers ----------
def hash_password(plain: str) -> str:
    return bcrypt.using(rounds=settings.BCRYPT_ROUNDS).hash(plain)


def verify_password(plain: str, stored: str) -> bool:
    """
    Verifica la contraseña contra el hash bcrypt guardado.
    Un hash vacío o con formato desconocido nunca valida.
    """
    if not stored:
        return False
    try:
        return bcrypt.verify(plain, stored)
    except ValueError:
        return False


def create_access_token(user: models.User, minutes: int | None = None) -> str:
    """
    Crea un JWT con:
    - sub: id del usuario (string)
    - role: USER / ADMIN
    - iat / exp
    """
    now = datetime.now(tz=timezone.utc)
    exp = now + timedelta(minutes=minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user.id),
        "role": Role(user.role).value,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


# =========================================================
# Dependencias
# =========================================================
def require_user(
    creds: HTTPAuthorizationCredentials = Security(security),
    db: Session = Depends(get_db),
) -> models.User:
    """
    Obliga a estar autenticado.

    - Lee el token Bearer del header Authorization.
    - Decodifica el JWT y valida exp y 'sub'.
    - Comprueba que el usuario exista y esté activo.
    """
    if not creds or (creds.scheme or "").lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token não fornecido",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = jwt.decode(creds.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise _forbidden("Token expirado")
    except JWTError:
        raise _forbidden("Token inválido")

    sub = payload.get("sub")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise _forbidden("Token inválido")

    user = db.get(models.User, user_id)
    if not user or not user.active:
        raise _forbidden("Usuário não encontrado ou inativo")
    return user


def require_admin(current: models.User = Depends(require_user)) -> models.User:
    if Role(current.role) != Role.ADMIN:
        raise _forbidden("Acesso restrito a administradores")
    return current


# =========================================================
# Endpoints
# =========================================================
@router.post("/login", response_model=TokenOut)
def login(data: LoginIn, db: Session = Depends(get_db)):
    """
    Login del usuario.

    1. Normaliza el username.
    2. Verifica la contraseña (bcrypt).
    3. Rechaza usuarios inactivos (403).
    4. Devuelve token, nombre y rol.
    """
    username = normalize_username(data.username)
    user = db.query(models.User).filter(models.User.username == username).first()

    if not user or not verify_password(data.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciais inválidas",
        )
    if not user.active:
        raise _forbidden("Usuário inativo")

    logger.info("[auth] login user_id=%s", user.id)
    return TokenOut(
        token=create_access_token(user),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        name=user.name,
        role=user.role,
    )


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(data: RegisterIn, db: Session = Depends(get_db)):
    username = normalize_username(data.username)
    if db.query(models.User).filter(models.User.username == username).first():
        raise HTTPException(status_code=400, detail="Usuário já existe.")

    user = models.User(
        username=username,
        password=hash_password(data.password),
        name=data.name.strip(),
        role=Role.USER,
        active=True,
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Usuário já existe.")

    db.refresh(user)
    logger.info("[auth] register user_id=%s", user.id)
    return user


@router.get("/me", response_model=UserOut)
def me(current: models.User = Depends(require_user)):
    """Datos del usuario autenticado."""
    return current
