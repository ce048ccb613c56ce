import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from feedback_dashboard.services.filters import FilterState


class FeedbackCreateRequest(BaseModel):
    sender_email: EmailStr
    sender_name: str | None = Field(default=None, max_length=255)
    subject: str | None = Field(default=None, max_length=500)
    raw_json: dict[str, Any] = Field(default_factory=dict)
    average_rating: float | None = Field(default=None, ge=0, le=5)
    feedback_summary: str | None = None
    received_at: datetime | None = None


class FeedbackResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    username: str
    sender_email: str
    sender_name: str | None = None
    subject: str | None = None
    raw_json: Any = None
    average_rating: float | None = None
    feedback_summary: str | None = None
    processed_at: datetime | None = None
    received_at: datetime
    is_processed: bool = False

    model_config = {"from_attributes": True}


class PageMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
    range_start: int
    range_end: int
    prev_disabled: bool
    next_disabled: bool


class FeedbackPageResponse(BaseModel):
    items: list[FeedbackResponse]
    page: PageMeta
    filters: FilterState


class FeedbackSearchResponse(BaseModel):
    items: list[FeedbackResponse]
    active: bool
    active_filters: int
    filters: FilterState
