from __future__ import annotations

from datetime import date as date_type, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hk_loans.app.core.constants import CATEGORY_DEFAULT, TransactionType
from hk_loans.app.db.custom_types import Money


class TransactionCreate(BaseModel):
    """Movimiento manual de caja. Sin fecha -> hoy."""
    type: TransactionType
    amount: Money = Field(..., gt=0, max_digits=14, decimal_places=2)
    category: str = Field(CATEGORY_DEFAULT, min_length=1, max_length=80)
    description: str = ""
    date: Optional[date_type] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: TransactionType
    amount: Money
    category: str
    description: str
    date: date_type
    loan_id: Optional[str] = None
    created_at: Optional[datetime] = None
