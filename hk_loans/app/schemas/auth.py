from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hk_loans.app.core.constants import Role


class LoginIn(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterIn(BaseModel):
    """
    Alta pública de un tenant (rol USER).
    El username se guarda en minúsculas y sin espacios.
    """
    username: str = Field(..., min_length=3, max_length=80)
    password: str = Field(..., min_length=4, max_length=128)
    name: str = Field(..., min_length=1, max_length=120)


class TokenOut(BaseModel):
    token: str
    token_type: str = "Bearer"
    expires_in: int
    name: str
    role: Role


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: str
    role: Role
    active: bool
    plan_id: Optional[str] = None
    created_at: Optional[datetime] = None
