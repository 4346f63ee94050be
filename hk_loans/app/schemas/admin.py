from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hk_loans.app.core.constants import InstallmentStatus, Role
from hk_loans.app.db.custom_types import Money
from hk_loans.app.schemas.auth import UserOut


# ============================
# Planes
# ============================

class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)
    price: Money = Field(Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    description: Optional[str] = None
    max_clients: int = Field(100, ge=0)
    max_loans: int = Field(100, ge=0)


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: Money
    description: Optional[str] = None
    max_clients: int
    max_loans: int
    created_at: Optional[datetime] = None


# ============================
# Usuarios (gestión de tenants)
# ============================

class AdminUserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=80)
    password: str = Field(..., min_length=4, max_length=128)
    name: str = Field(..., min_length=1, max_length=120)
    role: Role = Role.USER
    plan_id: Optional[str] = None


class AdminUserUpdate(BaseModel):
    """Actualización parcial. password solo si se quiere cambiar."""
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    password: Optional[str] = Field(None, min_length=4, max_length=128)
    role: Optional[Role] = None
    plan_id: Optional[str] = None


class AdminUserOut(UserOut):
    plan: Optional[PlanOut] = None
    clients_count: int = 0
    loans_count: int = 0


# ============================
# Estadísticas e integridad
# ============================

class AdminStatsOut(BaseModel):
    total_users: int
    total_clients: int
    total_loans: int
    total_loaned: Money


class PaidAmountViolation(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    loan_id: str
    number: int
    status: InstallmentStatus
    paid_amount: Optional[Money] = None
    paid_date: Optional[date] = None


class TotalDrift(BaseModel):
    loan_id: str
    total_amount: Money
    installments_total: Money


class IntegrityReportOut(BaseModel):
    ok: bool
    paid_amount_violations: List[PaidAmountViolation]
    total_drift: List[TotalDrift]
