from __future__ import annotations

from typing import List

from pydantic import BaseModel

from hk_loans.app.db.custom_types import Money
from hk_loans.app.schemas.loans import AlertInstallmentOut


class DashboardSummaryOut(BaseModel):
    total_invested: Money
    total_receivable: Money
    total_late: Money
    total_received: Money
    cash_in: Money
    cash_out: Money
    balance: Money


class DashboardAlertsOut(BaseModel):
    due_today: List[AlertInstallmentOut]
    late: List[AlertInstallmentOut]
