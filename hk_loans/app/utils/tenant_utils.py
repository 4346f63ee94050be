# hk_loans/app/utils/tenant_utils.py

"""
Carga de entidades con comprobación de propietario (tenant).

Todas las operaciones reciben el user_id de forma explícita (sale del
token en el router, nunca del cliente) y usan estas funciones antes de
tocar nada:

- id inexistente            -> HTTP 404
- existe pero de otro tenant -> HTTP 403

Las parcelas y documentos no tienen user_id propio: el dueño se resuelve
vía Loan -> Client -> User o Document -> Client -> User.
"""

from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from hk_loans.app.db import models


def _forbidden(detail: str = "Acesso negado.") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def get_owned_client(db: Session, user_id: int, client_id: str) -> models.Client:
    client = db.get(models.Client, client_id)
    if not client:
        raise _not_found("Cliente não encontrado")
    if client.user_id != user_id:
        raise _forbidden("Sem permissão sobre este cliente")
    return client


def get_owned_partner(db: Session, user_id: int, partner_id: str) -> models.Partner:
    partner = db.get(models.Partner, partner_id)
    if not partner:
        raise _not_found("Parceiro não encontrado")
    if partner.user_id != user_id:
        raise _forbidden("Sem permissão sobre este parceiro")
    return partner


def get_owned_loan(
    db: Session,
    user_id: int,
    loan_id: str,
    *,
    for_update: bool = False,
) -> models.Loan:
    """
    Carga un préstamo del tenant. Con for_update=True bloquea la fila
    (SELECT ... FOR UPDATE donde el dialecto lo soporta) para serializar
    mutaciones concurrentes sobre el mismo préstamo.
    """
    q = db.query(models.Loan).filter(models.Loan.id == loan_id)
    if for_update:
        q = q.with_for_update()
    loan = q.one_or_none()
    if not loan:
        raise _not_found("Empréstimo não encontrado")
    if loan.client.user_id != user_id:
        raise _forbidden("Sem permissão sobre este empréstimo")
    return loan


def get_owned_installment(
    db: Session,
    user_id: int,
    installment_id: str,
) -> models.Installment:
    installment = db.get(models.Installment, installment_id)
    if not installment:
        raise _not_found("Parcela não encontrada")
    if installment.loan.client.user_id != user_id:
        raise _forbidden("Sem permissão sobre esta parcela")
    return installment


def get_owned_transaction(db: Session, user_id: int, transaction_id: str) -> models.Transaction:
    trx = db.get(models.Transaction, transaction_id)
    if not trx:
        raise _not_found("Transação não encontrada")
    if trx.user_id != user_id:
        raise _forbidden("Sem permissão sobre esta transação")
    return trx


def get_owned_document(db: Session, user_id: int, document_id: str) -> models.ClientDocument:
    doc = db.get(models.ClientDocument, document_id)
    if not doc:
        raise _not_found("Documento não encontrado")
    if doc.client.user_id != user_id:
        raise _forbidden("Sem permissão sobre este documento")
    return doc


# ============================================================
# Límites del plan contratado
# ============================================================

def ensure_plan_allows(db: Session, user_id: int, resource: str) -> None:
    """
    Comprueba el límite del plan del tenant antes de crear un cliente
    (resource="clients") o un préstamo (resource="loans").

    Sin plan asignado no hay límite. Si se alcanza -> HTTP 400.
    """
    user = db.get(models.User, user_id)
    if not user or not user.plan:
        return

    if resource == "clients":
        current = db.query(models.Client).filter(models.Client.user_id == user_id).count()
        limit = user.plan.max_clients
        label = "clientes"
    else:
        current = (
            db.query(models.Loan)
            .join(models.Client, models.Loan.client_id == models.Client.id)
            .filter(models.Client.user_id == user_id)
            .count()
        )
        limit = user.plan.max_loans
        label = "empréstimos"

    if limit is not None and current >= limit:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Limite do plano atingido ({limit} {label}).",
        )
