"""
Utilidades de negocio para PRÉSTAMOS y PARCELAS en HK Loans.

Aquí centralizamos la lógica común (sin commits) que usan las operaciones
del libro de préstamos:

- Traducción de interest_type -> salto entre vencimientos.
- Generación del calendario de parcelas (importe constante total/N).
- Tasa de interés efectiva (dato de display, no fuente de verdad).
- Mantenimiento incremental de total_amount.
- Reevaluación de estado del préstamo (ACTIVE <-> COMPLETED).
- Invariante de paid_amount (solo con estado PAID / INTEREST_PAID).
- Detección de filas que violan las invariantes (informe de admin).
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from hk_loans.app.core.constants import (
    PAID_STATUSES,
    InstallmentStatus,
    InterestType,
    LoanStatus,
)
from hk_loans.app.db import models
from hk_loans.app.db.custom_types import ZERO, to_money


# ============================
# Periodicidad y fechas
# ============================

def add_months(d: date, months: int) -> date:
    """
    Suma `months` meses a una fecha. Si el día no existe en el mes destino
    se usa el último día de ese mes (31/01 + 1 -> 28/02 o 29/02).
    """
    y = d.year + (d.month - 1 + months) // 12
    m = (d.month - 1 + months) % 12 + 1
    return date(y, m, min(d.day, monthrange(y, m)[1]))


def advance_due_date(d: date, interest_type: Optional[str], periods: int = 1) -> date:
    """
    Avanza `periods` periodos desde `d` según el tipo de interés:

    - MONTHLY (por defecto) -> meses
    - WEEKLY                -> semanas
    - DAILY                 -> días
    """
    kind = InterestType(interest_type) if interest_type else InterestType.MONTHLY
    if kind == InterestType.WEEKLY:
        return d + timedelta(weeks=periods)
    if kind == InterestType.DAILY:
        return d + timedelta(days=periods)
    return add_months(d, periods)


# ============================
# Calendario de parcelas
# ============================

def build_schedule(
    start_date: date,
    installments_count: int,
    total_amount: Decimal,
    interest_type: Optional[str],
) -> List[dict]:
    """
    Genera el calendario de parcelas de un préstamo nuevo.

    - importe de cada parcela = total_amount / installments_count,
      redondeado a céntimos. No se reparte el resto del redondeo.
    - vencimiento k = start_date + k periodos (k = 1..N), siempre contado
      desde la fecha de inicio para no acumular recortes de fin de mes.

    Devuelve una lista de dicts con number, amount y due_date.
    """
    if installments_count <= 0:
        return []

    installment_value = to_money(Decimal(total_amount) / Decimal(installments_count))
    return [
        {
            "number": k,
            "amount": installment_value,
            "due_date": advance_due_date(start_date, interest_type, k),
        }
        for k in range(1, installments_count + 1)
    ]


def compute_interest_rate(amount, total_amount) -> Decimal:
    """(total - principal) / principal * 100, o 0 si no hay principal."""
    principal = to_money(amount)
    if principal <= 0:
        return ZERO
    return to_money((to_money(total_amount) - principal) / principal * Decimal(100))


def next_installment_number(loan: models.Loan) -> int:
    return max((i.number for i in loan.installments), default=0) + 1


# ============================
# Invariantes
# ============================

def counted_amount(installment: models.Installment) -> Decimal:
    """Importe con el que la parcela cuenta en total_amount del préstamo."""
    if installment.status == InstallmentStatus.RENEGOTIATED:
        return ZERO
    return to_money(installment.amount)


def apply_total_delta(loan: models.Loan, delta: Decimal) -> None:
    """
    Ajusta total_amount en `delta` (y la tasa de display).

    Un préstamo RENEGOTIATED queda congelado como histórico: no se toca.
    """
    if loan.status == LoanStatus.RENEGOTIATED or not delta:
        return
    loan.total_amount = to_money(to_money(loan.total_amount) + delta)
    loan.interest_rate = compute_interest_rate(loan.amount, loan.total_amount)


def enforce_paid_amount_invariant(installment: models.Installment) -> None:
    """Si la parcela no está cobrada, no puede tener paid_amount ni paid_date."""
    if installment.status not in PAID_STATUSES:
        installment.paid_amount = None
        installment.paid_date = None


def refresh_loan_status(loan: models.Loan) -> LoanStatus:
    """
    Reevalúa el estado del préstamo tras un pago o una edición:

    - RENEGOTIATED es terminal: no cambia.
    - Sin parcelas PENDING -> COMPLETED.
    - COMPLETED que recupera alguna PENDING -> ACTIVE.
    """
    if loan.status == LoanStatus.RENEGOTIATED:
        return loan.status

    has_pending = any(i.status == InstallmentStatus.PENDING for i in loan.installments)
    if not has_pending:
        loan.status = LoanStatus.COMPLETED
    elif loan.status == LoanStatus.COMPLETED:
        loan.status = LoanStatus.ACTIVE
    return loan.status


# ============================
# Informe de integridad (admin)
# ============================

def find_paid_amount_violations(db: Session) -> List[models.Installment]:
    """Parcelas no cobradas con paid_amount > 0."""
    return (
        db.query(models.Installment)
        .filter(
            models.Installment.status.notin_(list(PAID_STATUSES)),
            models.Installment.paid_amount.isnot(None),
            models.Installment.paid_amount != 0,
        )
        .all()
    )


def find_total_drift(db: Session) -> List[dict]:
    """
    Préstamos ACTIVE/COMPLETED cuyo total_amount no coincide con la suma
    de sus parcelas no renegociadas.
    """
    sums = (
        db.query(
            models.Installment.loan_id.label("loan_id"),
            func.coalesce(func.sum(models.Installment.amount), 0).label("installments_total"),
        )
        .filter(models.Installment.status != InstallmentStatus.RENEGOTIATED)
        .group_by(models.Installment.loan_id)
        .subquery()
    )

    rows = (
        db.query(models.Loan, sums.c.installments_total)
        .outerjoin(sums, sums.c.loan_id == models.Loan.id)
        .filter(models.Loan.status.in_([LoanStatus.ACTIVE, LoanStatus.COMPLETED]))
        .all()
    )

    drift = []
    for loan, installments_total in rows:
        expected = to_money(installments_total or 0)
        if to_money(loan.total_amount) != expected:
            drift.append(
                {
                    "loan_id": loan.id,
                    "total_amount": to_money(loan.total_amount),
                    "installments_total": expected,
                }
            )
    return drift
