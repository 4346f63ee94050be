# hk_loans/app/api/v1/transactions_router.py

"""
Flujo de caja del tenant.

- GET    /api/v1/transactions       -> filtros type, start, end, category
- POST   /api/v1/transactions       -> movimiento manual
- DELETE /api/v1/transactions/{id}  -> corrección del usuario

Los movimientos no se editan nunca: solo se crean o se borran.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from hk_loans.app.api.v1.auth_router import require_user
from hk_loans.app.core.constants import CATEGORY_DEFAULT, TransactionType
from hk_loans.app.db import models
from hk_loans.app.db.session import get_db
from hk_loans.app.schemas.transactions import TransactionCreate, TransactionOut
from hk_loans.app.utils.cashflow_utils import record_transaction
from hk_loans.app.utils.tenant_utils import get_owned_transaction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=List[TransactionOut])
def list_transactions(
    type_filter: Optional[TransactionType] = Query(None, alias="type"),
    start: Optional[date] = Query(None, description="Desde (incluida)"),
    end: Optional[date] = Query(None, description="Hasta (incluida)"),
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="Data inicial maior que a final.")

    query = db.query(models.Transaction).filter(models.Transaction.user_id == current_user.id)
    if type_filter:
        query = query.filter(models.Transaction.type == type_filter)
    if start:
        query = query.filter(models.Transaction.date >= start)
    if end:
        query = query.filter(models.Transaction.date <= end)
    if category:
        query = query.filter(models.Transaction.category == category)

    return query.order_by(models.Transaction.date.desc(), models.Transaction.created_at.desc()).all()


@router.post("", response_model=TransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    trx = record_transaction(
        db,
        user_id=current_user.id,
        type=payload.type,
        amount=payload.amount,
        category=(payload.category or "").strip() or CATEGORY_DEFAULT,
        description=(payload.description or "").strip(),
        on_date=payload.date,
    )
    db.commit()
    db.refresh(trx)
    return trx


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    trx = get_owned_transaction(db, current_user.id, transaction_id)
    db.delete(trx)
    db.commit()

    logger.info("[cashflow] delete transaction_id=%s user_id=%s", transaction_id, current_user.id)
    return {"ok": True}
