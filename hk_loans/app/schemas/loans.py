from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hk_loans.app.core.constants import (
    InstallmentStatus,
    InterestType,
    LoanStatus,
    PaymentType,
)
from hk_loans.app.db.custom_types import Money
from hk_loans.app.schemas.clients import ClientBrief


# ============================
# Pydantic: PARCELAS
# ============================

class InstallmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    loan_id: str
    number: int
    amount: Money
    due_date: date
    status: InstallmentStatus
    paid_amount: Optional[Money] = None
    paid_date: Optional[date] = None


class InstallmentPayIn(BaseModel):
    """
    Pago de una parcela.

    - FULL: amount_paid es lo que confirma el usuario (puede no coincidir
      con el importe de la parcela).
    - INTEREST_ONLY: amount_paid son solo los intereses; la parcela se
      renueva en una nueva con vencimiento next_due_date (o +1 periodo).
    """
    payment_type: PaymentType = PaymentType.FULL
    amount_paid: Money = Field(..., gt=0, max_digits=14, decimal_places=2)
    payment_date: Optional[date] = None
    next_due_date: Optional[date] = None


class InstallmentEditIn(BaseModel):
    """
    Corrección directa de una parcela. Solo se aplican los campos enviados
    (model_dump(exclude_unset=True)).
    """
    status: Optional[InstallmentStatus] = None
    amount: Optional[Money] = Field(None, gt=0, max_digits=14, decimal_places=2)
    due_date: Optional[date] = None
    paid_amount: Optional[Money] = Field(None, ge=0, max_digits=14, decimal_places=2)
    paid_date: Optional[date] = None


class InstallmentPayOut(BaseModel):
    installment: InstallmentOut
    new_installment: Optional[InstallmentOut] = None
    loan_status: LoanStatus


class LoanBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: LoanStatus
    interest_type: InterestType
    client: ClientBrief


class AlertInstallmentOut(InstallmentOut):
    """Parcela con su préstamo y cliente (listas de alertas)."""
    loan: LoanBrief


# ============================
# Pydantic: PRÉSTAMOS
# ============================

class LoanCreate(BaseModel):
    """
    Alta de préstamo. El servidor genera las parcelas:
    total_amount / installments_count cada una, desde start_date.
    """
    client_id: str
    amount: Money = Field(..., gt=0, max_digits=14, decimal_places=2)
    total_amount: Money = Field(..., gt=0, max_digits=14, decimal_places=2)
    installments_count: int = Field(..., ge=1, le=1000)
    start_date: date
    interest_type: InterestType = InterestType.MONTHLY
    partner_id: Optional[str] = None


class LoanUpdate(BaseModel):
    amount: Optional[Money] = Field(None, gt=0, max_digits=14, decimal_places=2)
    interest_type: Optional[InterestType] = None
    start_date: Optional[date] = None
    partner_id: Optional[str] = None


class RenegotiateIn(BaseModel):
    new_total_amount: Money = Field(..., gt=0, max_digits=14, decimal_places=2)
    new_installments_count: int = Field(..., ge=1, le=1000)
    new_start_date: date
    paid_amount_entry: Money = Field(Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    interest_type: Optional[InterestType] = None


class LoanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    partner_id: Optional[str] = None
    original_loan_id: Optional[str] = None
    amount: Money
    total_amount: Money
    interest_rate: Decimal
    interest_type: InterestType
    start_date: date
    status: LoanStatus
    created_at: Optional[datetime] = None
    client: Optional[ClientBrief] = None
    installments: List[InstallmentOut] = []


class LoanDeleteOut(BaseModel):
    ok: bool = True
    transactions_removed: int = 0
