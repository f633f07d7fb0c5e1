# backend/booking_engine/schemas/reviews.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    booking_id: int
    rating: int = Field(..., description="Whole stars, 1 to 5")
    comment: Optional[str] = None


class ReviewRead(BaseModel):
    id: int
    booking_id: int
    seeker_id: int
    provider_id: int
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProviderRatingRead(BaseModel):
    provider_id: int
    average_rating: float
    total_reviews: int
