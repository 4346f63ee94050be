from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from hk_loans.app.core.constants import RATING_DEFAULT, RATING_MAX, RATING_MIN
from hk_loans.app.db.custom_types import Money


# ============================
# Documentos
# ============================

class ClientDocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    name: str
    url: str
    mime_type: str
    size: int
    created_at: Optional[datetime] = None


# ============================
# Clientes
# ============================

class ClientBase(BaseModel):
    """
    Campos de la ficha de cliente.

    - cpf se normaliza a dígitos en el router.
    - rating: 1..5 estrellas (menos estrellas = más riesgo).
    """
    name: str = Field(..., min_length=1, max_length=200)
    whatsapp: Optional[str] = None
    cpf: Optional[str] = None
    rg: Optional[str] = None
    address: Optional[str] = None
    mother_name: Optional[str] = None
    pix: Optional[str] = None
    bank: Optional[str] = None
    observation: Optional[str] = None
    rating: int = Field(RATING_DEFAULT, ge=RATING_MIN, le=RATING_MAX)
    group_name: Optional[str] = None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    """Actualización parcial: solo se tocan los campos enviados."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    whatsapp: Optional[str] = None
    cpf: Optional[str] = None
    rg: Optional[str] = None
    address: Optional[str] = None
    mother_name: Optional[str] = None
    pix: Optional[str] = None
    bank: Optional[str] = None
    observation: Optional[str] = None
    rating: Optional[int] = Field(None, ge=RATING_MIN, le=RATING_MAX)
    group_name: Optional[str] = None


class ClientOut(ClientBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: int
    created_at: Optional[datetime] = None
    documents: List[ClientDocumentOut] = []
    loans_count: int = 0


class ClientBrief(BaseModel):
    """Datos mínimos del cliente embebidos en préstamos y alertas."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    whatsapp: Optional[str] = None
    rating: int = RATING_DEFAULT


class ClientStatsOut(BaseModel):
    client_id: str
    total_loaned: Money
    total_debt: Money
    total_paid: Money
    active_loans_count: int
    renegotiated_loans_count: int
