# hk_loans/app/utils/common.py

"""
Funciones auxiliares comunes entre los routers de escritura.

- rollback_and_raise(db, exc, action, **ctx):
    Cierra una mutación fallida: rollback y traducción del error a la
    respuesta HTTP estable {"detail": ...}.
"""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def rollback_and_raise(db: Session, exc: Exception, action: str, **ctx) -> NoReturn:
    """
    Traduce un fallo durante una mutación, siempre con rollback previo:

    - HTTPException  -> se propaga tal cual (regla de negocio o propiedad)
    - IntegrityError -> 400
    - resto          -> 500 "Erro ao <acción>" (con traza en el log)
    """
    db.rollback()
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, IntegrityError):
        logger.warning("[db] %s integrity error %s: %s", action, ctx, exc.orig)
        raise HTTPException(status_code=400, detail="Conflito de integridade nos dados.") from exc
    logger.exception("[db] %s FAILED %s", action, ctx)
    raise HTTPException(status_code=500, detail=f"Erro ao {action}") from exc
