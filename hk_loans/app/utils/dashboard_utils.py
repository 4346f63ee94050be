# hk_loans/app/utils/dashboard_utils.py

"""
Proyecciones de solo lectura para el dashboard y la ficha de cliente.

Se recalcula todo en cada petición (sin caché) a partir de las tablas
de préstamos, parcelas y transacciones, siempre filtrando por tenant.

Reglas de exclusión:
- Préstamos RENEGOTIATED no cuentan en invertido / a cobrar / atrasado.
- Lo ya cobrado (PAID / INTEREST_PAID) cuenta siempre en recibido,
  aunque el préstamo esté renegociado.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session, joinedload

from hk_loans.app.core.constants import (
    PAID_STATUSES,
    InstallmentStatus,
    LoanStatus,
    TransactionType,
)
from hk_loans.app.db import models
from hk_loans.app.db.custom_types import to_money


def _tenant_loans(db: Session, user_id: int):
    return (
        db.query(models.Loan)
        .join(models.Client, models.Loan.client_id == models.Client.id)
        .filter(models.Client.user_id == user_id)
    )


def _tenant_installments(db: Session, user_id: int):
    return (
        db.query(models.Installment)
        .join(models.Loan, models.Installment.loan_id == models.Loan.id)
        .join(models.Client, models.Loan.client_id == models.Client.id)
        .filter(models.Client.user_id == user_id)
    )


def _sum(query, column) -> Decimal:
    value = query.with_entities(func.coalesce(func.sum(column), 0)).scalar()
    return to_money(value)


# ============================
# Resumen
# ============================

def build_summary(db: Session, user_id: int, today: Optional[date] = None) -> Dict[str, Decimal]:
    """
    Totales del tenant:

    - total_invested:   Σ principal de préstamos ACTIVE
    - total_receivable: Σ total_amount de préstamos ACTIVE
    - total_late:       Σ importe de parcelas PENDING vencidas de préstamos ACTIVE
    - total_received:   Σ paid_amount de parcelas PAID / INTEREST_PAID
    - cash_in / cash_out / balance: a partir de las transacciones
    """
    today = today or date.today()

    active_loans = _tenant_loans(db, user_id).filter(models.Loan.status == LoanStatus.ACTIVE)
    total_invested = _sum(active_loans, models.Loan.amount)
    total_receivable = _sum(active_loans, models.Loan.total_amount)

    late = _tenant_installments(db, user_id).filter(
        models.Loan.status == LoanStatus.ACTIVE,
        models.Installment.status == InstallmentStatus.PENDING,
        models.Installment.due_date < today,
    )
    total_late = _sum(late, models.Installment.amount)

    received = _tenant_installments(db, user_id).filter(
        models.Installment.status.in_(list(PAID_STATUSES)),
    )
    total_received = _sum(received, models.Installment.paid_amount)

    cash_in, cash_out = (
        db.query(
            func.coalesce(
                func.sum(case((models.Transaction.type == TransactionType.IN, models.Transaction.amount), else_=0)),
                0,
            ),
            func.coalesce(
                func.sum(case((models.Transaction.type == TransactionType.OUT, models.Transaction.amount), else_=0)),
                0,
            ),
        )
        .filter(models.Transaction.user_id == user_id)
        .one()
    )
    cash_in = to_money(cash_in)
    cash_out = to_money(cash_out)

    return {
        "total_invested": total_invested,
        "total_receivable": total_receivable,
        "total_late": total_late,
        "total_received": total_received,
        "cash_in": cash_in,
        "cash_out": cash_out,
        "balance": to_money(cash_in - cash_out),
    }


# ============================
# Alertas
# ============================

def build_alerts(
    db: Session,
    user_id: int,
    today: Optional[date] = None,
) -> Dict[str, List[models.Installment]]:
    """
    Parcelas PENDING de préstamos ACTIVE que vencen hoy (due_today) o que
    ya vencieron (late), con préstamo y cliente cargados para mostrar.
    """
    today = today or date.today()

    base = (
        _tenant_installments(db, user_id)
        .options(joinedload(models.Installment.loan).joinedload(models.Loan.client))
        .filter(
            models.Loan.status == LoanStatus.ACTIVE,
            models.Installment.status == InstallmentStatus.PENDING,
        )
    )

    due_today = base.filter(models.Installment.due_date == today).order_by(models.Installment.number).all()
    late = base.filter(models.Installment.due_date < today).order_by(models.Installment.due_date).all()
    return {"due_today": due_today, "late": late}


# ============================
# Estadísticas de cliente
# ============================

def build_client_stats(client: models.Client) -> Dict[str, object]:
    """Totales de la ficha de cliente (historial completo, renegociados incluidos)."""
    loans = list(client.loans)

    total_loaned = sum(
        (to_money(l.amount) for l in loans if l.status != LoanStatus.RENEGOTIATED),
        to_money(0),
    )
    total_debt = to_money(0)
    total_paid = to_money(0)
    active_loans = 0

    for loan in loans:
        pending = [i for i in loan.installments if i.status == InstallmentStatus.PENDING]
        if pending:
            active_loans += 1
        total_debt += sum((to_money(i.amount) for i in pending), to_money(0))
        total_paid += sum(
            (to_money(i.paid_amount) for i in loan.installments if i.status in PAID_STATUSES),
            to_money(0),
        )

    return {
        "client_id": client.id,
        "total_loaned": to_money(total_loaned),
        "total_debt": to_money(total_debt),
        "total_paid": to_money(total_paid),
        "active_loans_count": active_loans,
        "renegotiated_loans_count": sum(1 for l in loans if l.status == LoanStatus.RENEGOTIATED),
    }
