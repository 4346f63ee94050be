# hk_loans/app/api/v1/admin_router.py

"""
Operaciones de administración (rol ADMIN).

Endpoints:
- GET    /api/v1/admin/stats
- GET    /api/v1/admin/users
- POST   /api/v1/admin/users
- PUT    /api/v1/admin/users/{id}
- PUT    /api/v1/admin/users/{id}/toggle-status
- DELETE /api/v1/admin/users/{id}      -> cascada de todo lo del tenant
- GET    /api/v1/admin/plans
- POST   /api/v1/admin/plans
- DELETE /api/v1/admin/plans/{id}      -> los usuarios se quedan sin plan
- GET    /api/v1/admin/integrity       -> filas que violan las invariantes

Reglas:
- Un admin no puede borrarse ni desactivarse a sí mismo.
- Asignar plan a un usuario registra una suscripción ACTIVE y cancela
  la anterior.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hk_loans.app.api.v1.auth_router import hash_password, require_admin
from hk_loans.app.core.constants import LoanStatus, SubscriptionStatus
from hk_loans.app.db import models
from hk_loans.app.db.custom_types import to_money
from hk_loans.app.db.session import get_db
from hk_loans.app.schemas.admin import (
    AdminStatsOut,
    AdminUserCreate,
    AdminUserOut,
    AdminUserUpdate,
    IntegrityReportOut,
    PaidAmountViolation,
    PlanCreate,
    PlanOut,
    TotalDrift,
)
from hk_loans.app.utils.common import rollback_and_raise
from hk_loans.app.utils.loan_utils import find_paid_amount_violations, find_total_drift
from hk_loans.app.utils.storage_utils import remove_stored_file
from hk_loans.app.utils.text_utils import normalize_username

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ================================
# Helpers internos
# ================================
def _get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="Usuário não encontrado")
    return user


def _get_plan_or_404(db: Session, plan_id: str) -> models.Plan:
    plan = db.get(models.Plan, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Plano não encontrado")
    return plan


def _assign_plan(db: Session, user: models.User, plan_id: Optional[str]) -> None:
    """
    Cambia el plan del usuario:
    - cancela las suscripciones ACTIVE previas
    - si hay plan nuevo, crea una suscripción ACTIVE
    """
    if plan_id == user.plan_id:
        return
    plan = _get_plan_or_404(db, plan_id) if plan_id else None

    for sub in user.subscriptions:
        if sub.status == SubscriptionStatus.ACTIVE:
            sub.status = SubscriptionStatus.CANCELLED

    user.plan_id = plan.id if plan else None
    if plan:
        user.subscriptions.append(models.Subscription(plan_id=plan.id, status=SubscriptionStatus.ACTIVE))


def _user_out(db: Session, user: models.User) -> AdminUserOut:
    out = AdminUserOut.model_validate(user)
    out.clients_count = db.query(models.Client).filter(models.Client.user_id == user.id).count()
    out.loans_count = (
        db.query(models.Loan)
        .join(models.Client, models.Loan.client_id == models.Client.id)
        .filter(models.Client.user_id == user.id)
        .count()
    )
    return out


# ================================
# Estadísticas
# ================================
@router.get("/stats", response_model=AdminStatsOut)
def admin_stats(db: Session = Depends(get_db)):
    total_loaned = (
        db.query(func.coalesce(func.sum(models.Loan.amount), 0))
        .filter(models.Loan.status != LoanStatus.RENEGOTIATED)
        .scalar()
    )
    return AdminStatsOut(
        total_users=db.query(models.User).count(),
        total_clients=db.query(models.Client).count(),
        total_loans=db.query(models.Loan).count(),
        total_loaned=to_money(total_loaned),
    )


@router.get("/integrity", response_model=IntegrityReportOut)
def integrity_report(db: Session = Depends(get_db)):
    """
    Informe de solo lectura:
    - parcelas no cobradas con paid_amount
    - préstamos ACTIVE/COMPLETED cuyo total no cuadra con sus parcelas
    """
    violations = [PaidAmountViolation.model_validate(i) for i in find_paid_amount_violations(db)]
    drift = [TotalDrift(**row) for row in find_total_drift(db)]
    if violations or drift:
        logger.warning("[admin] integrity violations=%s drift=%s", len(violations), len(drift))
    return IntegrityReportOut(
        ok=not violations and not drift,
        paid_amount_violations=violations,
        total_drift=drift,
    )


# ================================
# Usuarios
# ================================
@router.get("/users", response_model=List[AdminUserOut])
def list_users(db: Session = Depends(get_db)):
    rows = db.query(models.User).order_by(models.User.created_at.desc(), models.User.id.desc()).all()
    return [_user_out(db, u) for u in rows]


@router.post("/users", response_model=AdminUserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: AdminUserCreate, db: Session = Depends(get_db)):
    username = normalize_username(payload.username)
    if db.query(models.User).filter(models.User.username == username).first():
        raise HTTPException(status_code=400, detail="Usuário já existe.")

    user = models.User(
        username=username,
        password=hash_password(payload.password),
        name=payload.name.strip(),
        role=payload.role,
        active=True,
    )
    try:
        db.add(user)
        db.flush()
        _assign_plan(db, user, payload.plan_id)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Usuário já existe.")
    except Exception as e:
        rollback_and_raise(db, e, "criar usuário", username=username)

    db.refresh(user)
    logger.info("[admin] create user_id=%s role=%s", user.id, user.role)
    return _user_out(db, user)


@router.put("/users/{user_id}", response_model=AdminUserOut)
def update_user(
    user_id: int,
    payload: AdminUserUpdate,
    db: Session = Depends(get_db),
    current: models.User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    data = payload.model_dump(exclude_unset=True)

    if user.id == current.id and data.get("role") not in (None, current.role):
        raise HTTPException(status_code=400, detail="Você não pode alterar seu próprio papel.")

    if data.get("name"):
        user.name = data["name"].strip()
    if data.get("password"):
        user.password = hash_password(data["password"])
    if data.get("role"):
        user.role = data["role"]

    try:
        if "plan_id" in data:
            _assign_plan(db, user, data["plan_id"])
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "atualizar usuário", user_id=user_id)

    db.refresh(user)
    logger.info("[admin] update user_id=%s fields=%s", user.id, sorted(data))
    return _user_out(db, user)


@router.put("/users/{user_id}/toggle-status", response_model=AdminUserOut)
def toggle_user_status(
    user_id: int,
    db: Session = Depends(get_db),
    current: models.User = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    if user.id == current.id:
        raise HTTPException(status_code=400, detail="Você não pode desativar a si mesmo.")

    user.active = not user.active
    db.commit()
    db.refresh(user)

    logger.info("[admin] toggle user_id=%s active=%s", user.id, user.active)
    return _user_out(db, user)


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current: models.User = Depends(require_admin),
):
    """
    Borra el tenant y, en cascada, clientes (con préstamos, parcelas y
    documentos), socios, transacciones y suscripciones.
    """
    user = _get_user_or_404(db, user_id)
    if user.id == current.id:
        raise HTTPException(status_code=400, detail="Você não pode excluir a si mesmo.")

    urls = [d.url for c in user.clients for d in c.documents]
    try:
        db.delete(user)
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "excluir usuário", user_id=user_id)

    for url in urls:
        remove_stored_file(url)

    logger.info("[admin] delete user_id=%s", user_id)
    return {"ok": True}


# ================================
# Planes
# ================================
@router.get("/plans", response_model=List[PlanOut])
def list_plans(db: Session = Depends(get_db)):
    return db.query(models.Plan).order_by(models.Plan.price.asc(), models.Plan.name.asc()).all()


@router.post("/plans", response_model=PlanOut, status_code=status.HTTP_201_CREATED)
def create_plan(payload: PlanCreate, db: Session = Depends(get_db)):
    name = payload.name.strip()
    if db.query(models.Plan).filter(models.Plan.name == name).first():
        raise HTTPException(status_code=400, detail="Já existe um plano com esse nome.")

    plan = models.Plan(
        name=name,
        price=to_money(payload.price),
        description=payload.description,
        max_clients=payload.max_clients,
        max_loans=payload.max_loans,
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)

    logger.info("[admin] create plan_id=%s", plan.id)
    return plan


@router.delete("/plans/{plan_id}")
def delete_plan(plan_id: str, db: Session = Depends(get_db)):
    plan = _get_plan_or_404(db, plan_id)

    for user in list(plan.users):
        user.plan_id = None
    db.delete(plan)
    db.commit()

    logger.info("[admin] delete plan_id=%s", plan_id)
    return {"ok": True}
