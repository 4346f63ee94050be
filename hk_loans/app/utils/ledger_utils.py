"""
Operaciones del libro de préstamos (Loan Ledger).

Cada función:
- recibe la sesión y el user_id del tenant de forma explícita,
- hace TODAS las comprobaciones de propiedad y de negocio antes del
  primer cambio,
- aplica los cambios con flush() pero SIN commit: el router envuelve la
  llamada en una única transacción (commit si todo va bien, rollback si
  algo falla), de modo que préstamo, parcelas y movimientos de caja se
  guardan juntos o no se guarda nada.

Efectos en caja:
- alta de préstamo      -> OUT "Empréstimo" (+ OUT "Comissão" si hay socio)
- pago FULL             -> IN  "Pagamento Parcela"
- pago INTEREST_ONLY    -> IN  "Juros"
- renegociación c/ entrada -> IN "Renegociação"
La edición directa de parcelas no genera movimientos.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from hk_loans.app.core.constants import (
    CATEGORY_COMMISSION,
    CATEGORY_INSTALLMENT_PAYMENT,
    CATEGORY_INTEREST,
    CATEGORY_LOAN,
    CATEGORY_RENEGOTIATION,
    InstallmentStatus,
    InterestType,
    LoanStatus,
    PaymentType,
    TransactionType,
)
from hk_loans.app.db import models
from hk_loans.app.db.custom_types import ZERO, to_money
from hk_loans.app.utils.cashflow_utils import cleanup_loan_transactions, record_transaction
from hk_loans.app.utils.loan_utils import (
    advance_due_date,
    apply_total_delta,
    build_schedule,
    compute_interest_rate,
    counted_amount,
    enforce_paid_amount_invariant,
    next_installment_number,
    refresh_loan_status,
)
from hk_loans.app.utils.tenant_utils import (
    ensure_plan_allows,
    get_owned_client,
    get_owned_installment,
    get_owned_loan,
    get_owned_partner,
)

logger = logging.getLogger(__name__)


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _add_schedule(loan: models.Loan, start_date: date, count: int, total_amount: Decimal) -> None:
    """
    Añade el calendario al préstamo y fija total_amount (e interest_rate)
    a la suma de las parcelas generadas: 1000 en 3 parcelas -> 999.99.
    """
    rows = build_schedule(start_date, count, total_amount, loan.interest_type)
    for row in rows:
        loan.installments.append(
            models.Installment(
                number=row["number"],
                amount=row["amount"],
                due_date=row["due_date"],
                status=InstallmentStatus.PENDING,
            )
        )
    loan.total_amount = to_money(sum((row["amount"] for row in rows), ZERO))
    loan.interest_rate = compute_interest_rate(loan.amount, loan.total_amount)


# =======================================================
# Alta de préstamo
# =======================================================

def create_loan(
    db: Session,
    user_id: int,
    *,
    client_id: str,
    amount: Decimal,
    total_amount: Decimal,
    installments_count: int,
    start_date: date,
    interest_type: InterestType = InterestType.MONTHLY,
    partner_id: Optional[str] = None,
) -> models.Loan:
    """
    Crea un préstamo con su calendario de parcelas y registra la salida
    de caja del principal (y la comisión del socio, si procede).
    """
    client = get_owned_client(db, user_id, client_id)
    partner = get_owned_partner(db, user_id, partner_id) if partner_id else None

    principal = to_money(amount)
    total = to_money(total_amount)
    if principal <= 0:
        raise _bad_request("O valor emprestado deve ser maior que zero.")
    if installments_count < 1:
        raise _bad_request("O número de parcelas deve ser pelo menos 1.")

    ensure_plan_allows(db, user_id, "loans")

    loan = models.Loan(
        client_id=client.id,
        partner_id=partner.id if partner else None,
        amount=principal,
        interest_type=interest_type or InterestType.MONTHLY,
        start_date=start_date,
        status=LoanStatus.ACTIVE,
    )
    _add_schedule(loan, start_date, installments_count, total)
    db.add(loan)
    db.flush()

    record_transaction(
        db,
        user_id=user_id,
        type=TransactionType.OUT,
        amount=principal,
        category=CATEGORY_LOAN,
        description=f"Empréstimo para {client.name}",
        loan_id=loan.id,
    )

    rate = to_money(partner.commission_rate) if partner and partner.commission_rate is not None else ZERO
    if partner and rate > 0:
        commission = to_money((loan.total_amount - principal) * rate / Decimal(100))
        if commission > 0:
            record_transaction(
                db,
                user_id=user_id,
                type=TransactionType.OUT,
                amount=commission,
                category=CATEGORY_COMMISSION,
                description=f"Comissão {partner.name} - {client.name}",
                loan_id=loan.id,
            )

    logger.info(
        "[loans] create loan_id=%s user_id=%s amount=%s total=%s n=%s",
        loan.id, user_id, principal, loan.total_amount, installments_count,
    )
    return loan


# =======================================================
# Edición de cabecera
# =======================================================

def update_loan(db: Session, user_id: int, loan_id: str, changes: Dict[str, Any]) -> models.Loan:
    """
    Edita campos de cabecera: amount, interest_type, start_date, partner_id.

    total_amount no se edita aquí: sigue a las parcelas. El calendario
    existente no se regenera.
    """
    loan = get_owned_loan(db, user_id, loan_id, for_update=True)

    if "partner_id" in changes and changes["partner_id"]:
        get_owned_partner(db, user_id, changes["partner_id"])
    if "amount" in changes:
        if changes["amount"] is None or to_money(changes["amount"]) <= 0:
            raise _bad_request("O valor emprestado deve ser maior que zero.")
        changes["amount"] = to_money(changes["amount"])

    for field in ("amount", "interest_type", "start_date", "partner_id"):
        if field in changes and (changes[field] is not None or field == "partner_id"):
            setattr(loan, field, changes[field])

    loan.interest_rate = compute_interest_rate(loan.amount, loan.total_amount)
    db.flush()
    return loan


# =======================================================
# Pagos
# =======================================================

def pay_installment(
    db: Session,
    user_id: int,
    installment_id: str,
    *,
    payment_type: PaymentType,
    amount_paid: Decimal,
    payment_date: Optional[date] = None,
    next_due_date: Optional[date] = None,
) -> Tuple[models.Installment, Optional[models.Installment]]:
    """
    Registra el pago de una parcela PENDING.

    - FULL: PENDING -> PAID con el importe que confirma el usuario (no se
      bloquean pagos parciales).
    - INTEREST_ONLY: PENDING -> INTEREST_PAID y se crea una parcela nueva
      con el MISMO importe original (el principal se arrastra), número
      max+1 y vencimiento next_due_date o +1 periodo.

    Devuelve (parcela pagada, parcela nueva o None).
    """
    installment = get_owned_installment(db, user_id, installment_id)
    loan = get_owned_loan(db, user_id, installment.loan_id, for_update=True)

    if loan.status == LoanStatus.RENEGOTIATED:
        raise _bad_request("Empréstimo renegociado não aceita pagamentos.")
    if installment.status != InstallmentStatus.PENDING:
        raise _bad_request("A parcela não está pendente.")

    paid = to_money(amount_paid)
    if paid <= 0:
        raise _bad_request("O valor pago deve ser maior que zero.")
    pay_date = payment_date or date.today()
    client_name = loan.client.name
    description = f"Pagamento Parcela {installment.number} - {client_name}"

    new_installment: Optional[models.Installment] = None

    if PaymentType(payment_type) == PaymentType.INTEREST_ONLY:
        installment.status = InstallmentStatus.INTEREST_PAID
        new_installment = models.Installment(
            number=next_installment_number(loan),
            amount=to_money(installment.amount),
            due_date=next_due_date or advance_due_date(installment.due_date, loan.interest_type, 1),
            status=InstallmentStatus.PENDING,
        )
        loan.installments.append(new_installment)
        apply_total_delta(loan, counted_amount(new_installment))
        category = CATEGORY_INTEREST
        description += " (Apenas Juros)"
    else:
        installment.status = InstallmentStatus.PAID
        category = CATEGORY_INSTALLMENT_PAYMENT

    installment.paid_amount = paid
    installment.paid_date = pay_date

    record_transaction(
        db,
        user_id=user_id,
        type=TransactionType.IN,
        amount=paid,
        category=category,
        description=description,
        on_date=pay_date,
        loan_id=loan.id,
    )

    refresh_loan_status(loan)
    db.flush()

    logger.info(
        "[installments] pay id=%s type=%s amount=%s loan_status=%s",
        installment.id, PaymentType(payment_type).value, paid, loan.status,
    )
    return installment, new_installment


# =======================================================
# Duplicar / editar / borrar parcelas
# =======================================================

def duplicate_installment(db: Session, user_id: int, installment_id: str) -> models.Installment:
    """
    Clona una parcela (mismo importe, siguiente periodo, número max+1,
    PENDING) e incrementa total_amount del préstamo en ese importe.
    No es idempotente: cada llamada crea una parcela nueva.
    """
    source = get_owned_installment(db, user_id, installment_id)
    loan = get_owned_loan(db, user_id, source.loan_id, for_update=True)

    if loan.status == LoanStatus.RENEGOTIATED:
        raise _bad_request("Empréstimo renegociado não aceita novas parcelas.")

    clone = models.Installment(
        number=next_installment_number(loan),
        amount=to_money(source.amount),
        due_date=advance_due_date(source.due_date, loan.interest_type, 1),
        status=InstallmentStatus.PENDING,
    )
    loan.installments.append(clone)
    apply_total_delta(loan, counted_amount(clone))
    refresh_loan_status(loan)
    db.flush()

    logger.info("[installments] duplicate source=%s new=%s loan_id=%s", source.id, clone.id, loan.id)
    return clone


def edit_installment(
    db: Session,
    user_id: int,
    installment_id: str,
    changes: Dict[str, Any],
) -> models.Installment:
    """
    Corrección directa de una parcela (status, amount, due_date,
    paid_amount, paid_date). Solo se tocan las claves presentes.

    - Sin efecto en caja.
    - Si el estado final no es PAID/INTEREST_PAID se limpian paid_amount
      y paid_date.
    - total_amount del préstamo sigue la diferencia de importe contable.
    - Se reevalúa COMPLETED/ACTIVE.
    """
    installment = get_owned_installment(db, user_id, installment_id)
    loan = get_owned_loan(db, user_id, installment.loan_id, for_update=True)

    if "amount" in changes:
        if changes["amount"] is None or to_money(changes["amount"]) <= 0:
            raise _bad_request("O valor da parcela deve ser maior que zero.")
    if "due_date" in changes and changes["due_date"] is None:
        raise _bad_request("A data de vencimento é obrigatória.")
    if "status" in changes and changes["status"] is None:
        raise _bad_request("O status é obrigatório.")

    before = counted_amount(installment)

    if "status" in changes:
        installment.status = InstallmentStatus(changes["status"])
    if "amount" in changes:
        installment.amount = to_money(changes["amount"])
    if "due_date" in changes:
        installment.due_date = changes["due_date"]
    if "paid_amount" in changes:
        installment.paid_amount = (
            to_money(changes["paid_amount"]) if changes["paid_amount"] is not None else None
        )
    if "paid_date" in changes:
        installment.paid_date = changes["paid_date"]

    enforce_paid_amount_invariant(installment)
    apply_total_delta(loan, counted_amount(installment) - before)
    refresh_loan_status(loan)
    db.flush()

    logger.info("[installments] edit id=%s fields=%s loan_status=%s", installment.id, sorted(changes), loan.status)
    return installment


def delete_installment(db: Session, user_id: int, installment_id: str) -> models.Loan:
    """
    Borrado físico de una parcela. total_amount se reduce en su importe
    contable y se reevalúa el estado del préstamo.
    """
    installment = get_owned_installment(db, user_id, installment_id)
    loan = get_owned_loan(db, user_id, installment.loan_id, for_update=True)

    apply_total_delta(loan, -counted_amount(installment))
    loan.installments.remove(installment)  # delete-orphan -> DELETE
    refresh_loan_status(loan)
    db.flush()

    logger.info("[installments] delete id=%s loan_id=%s", installment_id, loan.id)
    return loan


# =======================================================
# Renegociación
# =======================================================

def renegotiate_loan(
    db: Session,
    user_id: int,
    loan_id: str,
    *,
    new_total_amount: Decimal,
    new_installments_count: int,
    new_start_date: date,
    paid_amount_entry: Optional[Decimal] = None,
    interest_type: Optional[InterestType] = None,
) -> models.Loan:
    """
    Sustituye la deuda pendiente de un préstamo por un préstamo nuevo.

    1. El préstamo viejo pasa a RENEGOTIATED (terminal, sigue consultable).
    2. Sus parcelas PENDING pasan a RENEGOTIATED (no se borran).
    3. deuda = suma de esas parcelas; nuevo principal = deuda - entrada.
    4. Préstamo nuevo ACTIVE con original_loan_id = viejo y calendario
       new_total_amount / new_installments_count desde new_start_date.
    5. Entrada > 0 -> IN "Renegociação".

    El total del préstamo viejo no se toca.
    """
    loan = get_owned_loan(db, user_id, loan_id, for_update=True)

    if loan.status != LoanStatus.ACTIVE:
        raise _bad_request("Apenas empréstimos ativos podem ser renegociados.")

    pending = [i for i in loan.installments if i.status == InstallmentStatus.PENDING]
    if not pending:
        raise _bad_request("Não há parcelas pendentes para renegociar.")
    if new_installments_count < 1:
        raise _bad_request("O número de parcelas deve ser pelo menos 1.")

    debt = to_money(sum((to_money(i.amount) for i in pending), ZERO))
    entry = to_money(paid_amount_entry or 0)
    if entry < 0:
        raise _bad_request("A entrada não pode ser negativa.")
    if entry > debt:
        raise _bad_request("A entrada não pode ser maior que a dívida.")

    new_principal = to_money(debt - entry)
    new_total = to_money(new_total_amount)
    client_name = loan.client.name

    # --- préstamo viejo: estado terminal, historial intacto
    loan.status = LoanStatus.RENEGOTIATED
    for installment in pending:
        installment.status = InstallmentStatus.RENEGOTIATED
        enforce_paid_amount_invariant(installment)

    # --- préstamo nuevo
    new_loan = models.Loan(
        client_id=loan.client_id,
        original_loan_id=loan.id,
        amount=new_principal,
        interest_type=interest_type or loan.interest_type,
        start_date=new_start_date,
        status=LoanStatus.ACTIVE,
    )
    _add_schedule(new_loan, new_start_date, new_installments_count, new_total)
    db.add(new_loan)
    db.flush()

    if entry > 0:
        record_transaction(
            db,
            user_id=user_id,
            type=TransactionType.IN,
            amount=entry,
            category=CATEGORY_RENEGOTIATION,
            description=f"Entrada renegociação - {client_name}",
            loan_id=new_loan.id,
        )

    logger.info(
        "[loans] renegotiate old=%s new=%s debt=%s entry=%s total=%s n=%s",
        loan.id, new_loan.id, debt, entry, new_loan.total_amount, new_installments_count,
    )
    return new_loan


# =======================================================
# Borrado de préstamo
# =======================================================

def delete_loan(db: Session, user_id: int, loan_id: str) -> int:
    """
    Borrado físico del préstamo y sus parcelas, más la limpieza de sus
    movimientos de caja. Los préstamos que lo tenían como original
    conservan su historia con original_loan_id = NULL.

    Devuelve el número de transacciones borradas.
    """
    loan = get_owned_loan(db, user_id, loan_id, for_update=True)
    client_name = loan.client.name

    removed = cleanup_loan_transactions(db, user_id=user_id, loan_id=loan.id, client_name=client_name)
    for successor in list(loan.successors):
        successor.original_loan_id = None

    db.delete(loan)
    db.flush()

    logger.info("[loans] delete loan_id=%s transactions_removed=%s", loan_id, removed)
    return removed
