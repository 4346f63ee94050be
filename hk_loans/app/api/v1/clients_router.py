# hk_loans/app/api/v1/clients_router.py

"""
Router de CLIENTES (ficha del prestatario).

Endpoints:
- GET    /api/v1/clients              -> listar (filtros q, group)
- POST   /api/v1/clients              -> crear
- GET    /api/v1/clients/{id}         -> detalle
- PUT    /api/v1/clients/{id}         -> actualización parcial
- DELETE /api/v1/clients/{id}         -> borrar (cascada préstamos/documentos)
- GET    /api/v1/clients/{id}/stats   -> totales de la ficha
- GET    /api/v1/clients/{id}/loans   -> historial completo de préstamos

Reglas:
- Todo filtrado por el tenant del token.
- CPF se guarda solo con dígitos y es único por tenant.
- Cadenas vacías -> NULL.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from hk_loans.app.api.v1.auth_router import require_user
from hk_loans.app.db import models
from hk_loans.app.db.session import get_db
from hk_loans.app.schemas.clients import (
    ClientCreate,
    ClientOut,
    ClientStatsOut,
    ClientUpdate,
)
from hk_loans.app.schemas.loans import LoanOut
from hk_loans.app.utils.cashflow_utils import cleanup_loan_transactions
from hk_loans.app.utils.common import rollback_and_raise
from hk_loans.app.utils.dashboard_utils import build_client_stats
from hk_loans.app.utils.storage_utils import remove_stored_file
from hk_loans.app.utils.tenant_utils import ensure_plan_allows, get_owned_client
from hk_loans.app.utils.text_utils import blank_to_none, only_digits

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])

TEXT_FIELDS = (
    "whatsapp", "rg", "address", "mother_name", "pix", "bank", "observation", "group_name",
)


# ================================
# Helpers internos
# ================================
def _cpf_taken(db: Session, user_id: int, cpf: str, exclude_id: Optional[str] = None) -> bool:
    q = db.query(models.Client).filter(models.Client.user_id == user_id, models.Client.cpf == cpf)
    if exclude_id is not None:
        q = q.filter(models.Client.id != exclude_id)
    return db.query(q.exists()).scalar()


def _to_out(client: models.Client) -> ClientOut:
    out = ClientOut.model_validate(client)
    out.loans_count = len(client.loans)
    return out


def _normalized(values: dict) -> dict:
    """Aplica blank_to_none a los textos y deja el CPF solo con dígitos."""
    data = dict(values)
    for field in TEXT_FIELDS:
        if field in data:
            data[field] = blank_to_none(data[field])
    if "cpf" in data:
        data["cpf"] = only_digits(data["cpf"])
    if "name" in data and data["name"] is not None:
        data["name"] = data["name"].strip()
    return data


# ================================
# Endpoints
# ================================
@router.get("", response_model=List[ClientOut])
def list_clients(
    q: Optional[str] = Query(None, description="Filtro por nombre (contiene)"),
    group: Optional[str] = Query(None, description="Filtro exacto por grupo"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    query = (
        db.query(models.Client)
        .options(selectinload(models.Client.documents), selectinload(models.Client.loans))
        .filter(models.Client.user_id == current_user.id)
    )
    if q:
        query = query.filter(models.Client.name.ilike(f"%{q.strip()}%"))
    if group:
        query = query.filter(models.Client.group_name == group.strip())

    rows = query.order_by(models.Client.name.asc()).all()
    logger.info("[clients] list user_id=%s count=%s", current_user.id, len(rows))
    return [_to_out(c) for c in rows]


@router.post("", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    data = _normalized(payload.model_dump())
    if not data["name"]:
        raise HTTPException(status_code=400, detail="O nome é obrigatório.")

    ensure_plan_allows(db, current_user.id, "clients")
    if data.get("cpf") and _cpf_taken(db, current_user.id, data["cpf"]):
        raise HTTPException(status_code=400, detail="CPF já cadastrado.")

    row = models.Client(user_id=current_user.id, **data)
    try:
        db.add(row)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="CPF já cadastrado.")

    db.refresh(row)
    logger.info("[clients] create client_id=%s user_id=%s", row.id, current_user.id)
    return _to_out(row)


@router.get("/{client_id}", response_model=ClientOut)
def get_client(
    client_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    return _to_out(get_owned_client(db, current_user.id, client_id))


@router.put("/{client_id}", response_model=ClientOut)
def update_client(
    client_id: str,
    payload: ClientUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    """
    Actualización parcial: solo los campos enviados en el JSON.
    name y rating no admiten null.
    """
    client = get_owned_client(db, current_user.id, client_id)
    data = _normalized(payload.model_dump(exclude_unset=True))

    for field in ("name", "rating"):
        if field in data and not data[field]:
            raise HTTPException(status_code=400, detail=f"Campo obrigatório: {field}.")
    if data.get("cpf") and _cpf_taken(db, current_user.id, data["cpf"], exclude_id=client.id):
        raise HTTPException(status_code=400, detail="CPF já cadastrado.")

    for field, value in data.items():
        setattr(client, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="CPF já cadastrado.")

    db.refresh(client)
    logger.info("[clients] update client_id=%s fields=%s", client.id, sorted(data))
    return _to_out(client)


@router.delete("/{client_id}")
def delete_client(
    client_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    """
    Borra el cliente con sus préstamos, parcelas y documentos.
    Los movimientos de caja de sus préstamos se borran igual que en
    DELETE /loans/{id}; los manuales (sin loan_id) se conservan.
    Los ficheros de documentos se eliminan del disco tras el commit.
    """
    client = get_owned_client(db, current_user.id, client_id)
    urls = [d.url for d in client.documents]

    try:
        removed = 0
        for loan in client.loans:
            removed += cleanup_loan_transactions(
                db, user_id=current_user.id, loan_id=loan.id, client_name=client.name
            )
        db.delete(client)
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "excluir cliente", client_id=client_id)

    for url in urls:
        remove_stored_file(url)

    logger.info(
        "[clients] delete client_id=%s documents=%s transactions=%s", client_id, len(urls), removed
    )
    return {"ok": True}


@router.get("/{client_id}/stats", response_model=ClientStatsOut)
def client_stats(
    client_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    client = get_owned_client(db, current_user.id, client_id)
    return build_client_stats(client)


@router.get("/{client_id}/loans", response_model=List[LoanOut])
def client_loans(
    client_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    """Historial del cliente, incluidos los préstamos RENEGOTIATED."""
    client = get_owned_client(db, current_user.id, client_id)
    return (
        db.query(models.Loan)
        .options(selectinload(models.Loan.installments), selectinload(models.Loan.client))
        .filter(models.Loan.client_id == client.id)
        .order_by(models.Loan.start_date.desc(), models.Loan.created_at.desc())
        .all()
    )
