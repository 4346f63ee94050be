# hk_loans/app/api/v1/dashboard_router.py

"""
Dashboard del tenant (solo lectura, recalculado en cada petición).

- GET /api/v1/dashboard/summary
- GET /api/v1/dashboard/alerts
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hk_loans.app.api.v1.auth_router import require_user
from hk_loans.app.db import models
from hk_loans.app.db.session import get_db
from hk_loans.app.schemas.dashboard import DashboardAlertsOut, DashboardSummaryOut
from hk_loans.app.utils.dashboard_utils import build_alerts, build_summary

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardSummaryOut)
def summary(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    return build_summary(db, current_user.id)


@router.get("/alerts", response_model=DashboardAlertsOut)
def alerts(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    """Parcelas que vencen hoy y atrasadas, con préstamo y cliente."""
    return build_alerts(db, current_user.id)
