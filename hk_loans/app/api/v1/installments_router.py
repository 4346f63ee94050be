# hk_loans/app/api/v1/installments_router.py

"""
Router de PARCELAS.

- POST   /api/v1/installments/{id}/pay        -> pago FULL o INTEREST_ONLY
- PUT    /api/v1/installments/{id}            -> corrección directa (sin caja)
- POST   /api/v1/installments/{id}/duplicate  -> clona la parcela (+total)
- DELETE /api/v1/installments/{id}            -> borrado físico

Tras cada operación se reevalúa el estado del préstamo
(COMPLETED si no quedan PENDING, ACTIVE si vuelve a haberlas).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from hk_loans.app.api.v1.auth_router import require_user
from hk_loans.app.db import models
from hk_loans.app.db.session import get_db
from hk_loans.app.schemas.loans import (
    InstallmentEditIn,
    InstallmentOut,
    InstallmentPayIn,
    InstallmentPayOut,
    LoanOut,
)
from hk_loans.app.utils import ledger_utils
from hk_loans.app.utils.common import rollback_and_raise

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/installments", tags=["installments"])


@router.post("/{installment_id}/pay", response_model=InstallmentPayOut)
def pay_installment(
    installment_id: str,
    payload: InstallmentPayIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    """
    Parcela + movimiento de caja (+ parcela nueva en INTEREST_ONLY) en una
    sola transacción.
    """
    try:
        paid, created = ledger_utils.pay_installment(
            db,
            current_user.id,
            installment_id,
            payment_type=payload.payment_type,
            amount_paid=payload.amount_paid,
            payment_date=payload.payment_date,
            next_due_date=payload.next_due_date,
        )
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "registrar pagamento", installment_id=installment_id)

    db.refresh(paid)
    if created is not None:
        db.refresh(created)
    return InstallmentPayOut(
        installment=InstallmentOut.model_validate(paid),
        new_installment=InstallmentOut.model_validate(created) if created is not None else None,
        loan_status=paid.loan.status,
    )


@router.put("/{installment_id}", response_model=InstallmentOut)
def edit_installment(
    installment_id: str,
    payload: InstallmentEditIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    try:
        row = ledger_utils.edit_installment(
            db, current_user.id, installment_id, payload.model_dump(exclude_unset=True)
        )
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "atualizar parcela", installment_id=installment_id)

    db.refresh(row)
    return row


@router.post(
    "/{installment_id}/duplicate",
    response_model=InstallmentOut,
    status_code=status.HTTP_201_CREATED,
)
def duplicate_installment(
    installment_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    try:
        clone = ledger_utils.duplicate_installment(db, current_user.id, installment_id)
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "duplicar parcela", installment_id=installment_id)

    db.refresh(clone)
    return clone


@router.delete("/{installment_id}", response_model=LoanOut)
def delete_installment(
    installment_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    """Devuelve el préstamo actualizado (total y estado recalculados)."""
    try:
        loan = ledger_utils.delete_installment(db, current_user.id, installment_id)
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "excluir parcela", installment_id=installment_id)

    db.refresh(loan)
    return loan
