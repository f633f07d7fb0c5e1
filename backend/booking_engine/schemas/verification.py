# backend/booking_engine/schemas/verification.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class VerificationCreate(BaseModel):
    professional_title: str = Field(..., min_length=2)
    credentials: str = Field(..., min_length=2)
    category: str = "general"
    experience_years: int = Field(0, ge=0)
    bio: Optional[str] = None
    portfolio_url: Optional[str] = None
    linkedin_url: Optional[str] = None


class VerificationDecision(BaseModel):
    approve: bool
    feedback: Optional[str] = None


class VerificationRead(BaseModel):
    id: int
    user_id: int
    professional_title: str
    category: str
    credentials: str
    experience_years: int
    status: str
    feedback: Optional[str] = None
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
