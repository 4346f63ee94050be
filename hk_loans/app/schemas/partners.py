from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PartnerCreate(BaseModel):
    """
    Socio que trae clientes. commission_rate es el % que se lleva sobre el
    beneficio (total - principal) de los préstamos que tiene asociados.
    """
    name: str = Field(..., min_length=1, max_length=200)
    pix_key: Optional[str] = None
    commission_rate: Optional[Decimal] = Field(None, ge=0, le=100, max_digits=5, decimal_places=2)


class PartnerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    pix_key: Optional[str] = None
    commission_rate: Optional[Decimal] = None
    created_at: Optional[datetime] = None
