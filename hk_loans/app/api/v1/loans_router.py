# hk_loans/app/api/v1/loans_router.py

"""
Router de PRÉSTAMOS.

Endpoints:
- GET    /api/v1/loans                   -> listar (filtros status, client_id)
- POST   /api/v1/loans                   -> alta con calendario de parcelas
- GET    /api/v1/loans/{id}              -> detalle
- PUT    /api/v1/loans/{id}              -> editar cabecera
- DELETE /api/v1/loans/{id}              -> borrado físico + limpieza de caja
- POST   /api/v1/loans/{id}/renegotiate  -> sustituir deuda pendiente por un préstamo nuevo

Cada mutación es una unidad atómica: la lógica vive en utils/ledger_utils
(sin commit) y aquí se hace commit o rollback de todo junto.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, selectinload

from hk_loans.app.api.v1.auth_router import require_user
from hk_loans.app.core.constants import LoanStatus
from hk_loans.app.db import models
from hk_loans.app.db.session import get_db
from hk_loans.app.schemas.loans import (
    LoanCreate,
    LoanDeleteOut,
    LoanOut,
    LoanUpdate,
    RenegotiateIn,
)
from hk_loans.app.utils import ledger_utils
from hk_loans.app.utils.common import rollback_and_raise
from hk_loans.app.utils.tenant_utils import get_owned_loan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/loans", tags=["loans"])


# =======================================================
# Lectura
# =======================================================

@router.get("", response_model=List[LoanOut])
def list_loans(
    status_filter: Optional[LoanStatus] = Query(None, alias="status"),
    client_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    """
    Préstamos del tenant con cliente y parcelas, más recientes primero.
    """
    query = (
        db.query(models.Loan)
        .join(models.Client, models.Loan.client_id == models.Client.id)
        .options(selectinload(models.Loan.installments), selectinload(models.Loan.client))
        .filter(models.Client.user_id == current_user.id)
    )
    if status_filter:
        query = query.filter(models.Loan.status == status_filter)
    if client_id:
        query = query.filter(models.Loan.client_id == client_id)

    rows = query.order_by(models.Loan.start_date.desc(), models.Loan.created_at.desc()).all()
    logger.info("[loans] list user_id=%s count=%s", current_user.id, len(rows))
    return rows


@router.get("/{loan_id}", response_model=LoanOut)
def get_loan(
    loan_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    return get_owned_loan(db, current_user.id, loan_id)


# =======================================================
# Mutaciones
# =======================================================

@router.post("", response_model=LoanOut, status_code=status.HTTP_201_CREATED)
def create_loan(
    payload: LoanCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    """
    Alta de préstamo + parcelas + salida de caja (y comisión del socio).
    Todo o nada.
    """
    try:
        loan = ledger_utils.create_loan(
            db,
            current_user.id,
            client_id=payload.client_id,
            amount=payload.amount,
            total_amount=payload.total_amount,
            installments_count=payload.installments_count,
            start_date=payload.start_date,
            interest_type=payload.interest_type,
            partner_id=payload.partner_id,
        )
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "criar empréstimo", user_id=current_user.id)

    db.refresh(loan)
    return loan


@router.put("/{loan_id}", response_model=LoanOut)
def update_loan(
    loan_id: str,
    payload: LoanUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    try:
        loan = ledger_utils.update_loan(db, current_user.id, loan_id, payload.model_dump(exclude_unset=True))
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "atualizar empréstimo", loan_id=loan_id)

    db.refresh(loan)
    return loan


@router.delete("/{loan_id}", response_model=LoanDeleteOut)
def delete_loan(
    loan_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    try:
        removed = ledger_utils.delete_loan(db, current_user.id, loan_id)
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "excluir empréstimo", loan_id=loan_id)

    return LoanDeleteOut(ok=True, transactions_removed=removed)


@router.post("/{loan_id}/renegotiate", response_model=LoanOut, status_code=status.HTTP_201_CREATED)
def renegotiate_loan(
    loan_id: str,
    payload: RenegotiateIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    """
    Renegociación: el préstamo viejo pasa a RENEGOTIATED y se devuelve el
    préstamo nuevo (original_loan_id apunta al viejo).
    """
    try:
        new_loan = ledger_utils.renegotiate_loan(
            db,
            current_user.id,
            loan_id,
            new_total_amount=payload.new_total_amount,
            new_installments_count=payload.new_installments_count,
            new_start_date=payload.new_start_date,
            paid_amount_entry=payload.paid_amount_entry,
            interest_type=payload.interest_type,
        )
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "renegociar empréstimo", loan_id=loan_id)

    db.refresh(new_loan)
    return new_loan
