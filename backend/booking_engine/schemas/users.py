# backend/booking_engine/schemas/users.py

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel


class IdentitySync(BaseModel):
    """Webhook body from the identity provider."""
    external_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[Literal["seeker", "provider", "admin"]] = None


class UserRead(BaseModel):
    id: int
    external_id: str
    email: Optional[str] = None
    name: str
    role: str
    balance: Decimal
    is_active: bool

    model_config = {"from_attributes": True}
