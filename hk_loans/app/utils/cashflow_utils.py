# hk_loans/app/utils/cashflow_utils.py

"""
Diario de caja (transacciones IN/OUT).

- record_transaction: alta de un movimiento dentro de la transacción SQL
  en curso (sin commit). Lo usan tanto el alta manual como los efectos
  colaterales de préstamos, pagos y renegociaciones.
- cleanup_loan_transactions: limpieza al borrar un préstamo.

Las transacciones nunca se actualizan: solo se crean o se borran.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from hk_loans.app.core.config import settings
from hk_loans.app.core.constants import TransactionType
from hk_loans.app.db import models
from hk_loans.app.db.custom_types import to_money

logger = logging.getLogger(__name__)


def record_transaction(
    db: Session,
    *,
    user_id: int,
    type: TransactionType,
    amount,
    category: str,
    description: str = "",
    on_date: Optional[date] = None,
    loan_id: Optional[str] = None,
) -> models.Transaction:
    """
    Registra un movimiento de caja del tenant.

    No hacemos commit aquí: se asume que el router está en una transacción
    y hará db.commit() después de todos los cambios.
    """
    trx_type = TransactionType(type)
    trx = models.Transaction(
        user_id=user_id,
        loan_id=loan_id,
        type=trx_type,
        amount=to_money(amount),
        category=category,
        description=description or "",
        date=on_date or date.today(),
    )
    db.add(trx)
    db.flush()
    logger.info(
        "[cashflow] %s %s category=%s user_id=%s loan_id=%s",
        trx_type.value,
        trx.amount,
        category,
        user_id,
        loan_id,
    )
    return trx


def cleanup_loan_transactions(
    db: Session,
    *,
    user_id: int,
    loan_id: str,
    client_name: Optional[str],
) -> int:
    """
    Borra los movimientos asociados a un préstamo que se va a eliminar.

    1) Los que llevan loan_id: coincidencia exacta.
    2) Si LEGACY_TRANSACTION_NAME_CLEANUP está activo, además los del
       mismo tenant SIN loan_id cuya descripción contiene el nombre del
       cliente (datos anteriores a loan_id; heurística aproximada).

    Devuelve el número de filas borradas.
    """
    deleted = (
        db.query(models.Transaction)
        .filter(
            models.Transaction.user_id == user_id,
            models.Transaction.loan_id == loan_id,
        )
        .delete(synchronize_session=False)
    )

    name = (client_name or "").strip()
    if settings.LEGACY_TRANSACTION_NAME_CLEANUP and name:
        deleted += (
            db.query(models.Transaction)
            .filter(
                models.Transaction.user_id == user_id,
                models.Transaction.loan_id.is_(None),
                models.Transaction.description.contains(name, autoescape=True),
            )
            .delete(synchronize_session=False)
        )

    logger.info("[cashflow] cleanup loan_id=%s deleted=%s", loan_id, deleted)
    return deleted
