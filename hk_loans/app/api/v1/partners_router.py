# hk_loans/app/api/v1/partners_router.py

"""
Socios (referidos) del tenant.

- GET    /api/v1/partners
- POST   /api/v1/partners
- DELETE /api/v1/partners/{id}  -> los préstamos quedan con partner_id = NULL
"""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from hk_loans.app.api.v1.auth_router import require_user
from hk_loans.app.db import models
from hk_loans.app.db.session import get_db
from hk_loans.app.schemas.partners import PartnerCreate, PartnerOut
from hk_loans.app.utils.common import rollback_and_raise
from hk_loans.app.utils.tenant_utils import get_owned_partner
from hk_loans.app.utils.text_utils import blank_to_none

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/partners", tags=["partners"])


@router.get("", response_model=List[PartnerOut])
def list_partners(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    return (
        db.query(models.Partner)
        .filter(models.Partner.user_id == current_user.id)
        .order_by(models.Partner.name.asc())
        .all()
    )


@router.post("", response_model=PartnerOut, status_code=status.HTTP_201_CREATED)
def create_partner(
    payload: PartnerCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="O nome é obrigatório.")

    row = models.Partner(
        user_id=current_user.id,
        name=name,
        pix_key=blank_to_none(payload.pix_key),
        commission_rate=payload.commission_rate,
    )
    db.add(row)
    db.commit()
    db.refresh(row)

    logger.info("[partners] create partner_id=%s user_id=%s", row.id, current_user.id)
    return row


@router.delete("/{partner_id}")
def delete_partner(
    partner_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_user),
):
    partner = get_owned_partner(db, current_user.id, partner_id)

    try:
        for loan in list(partner.loans):
            loan.partner_id = None
        db.delete(partner)
        db.commit()
    except Exception as e:
        rollback_and_raise(db, e, "excluir parceiro", partner_id=partner_id)

    logger.info("[partners] delete partner_id=%s", partner_id)
    return {"ok": True}
