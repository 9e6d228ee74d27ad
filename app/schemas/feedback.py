"""Feedback schemas."""

from datetime import datetime

from pydantic import BaseModel

MIN_RATING = 1
MAX_RATING = 5


class FeedbackResponse(BaseModel):
    """Feedback response schema."""

    feedback_id: int
    appointment_id: int
    rating: int
    comments: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
