import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from feedback_dashboard.services.aggregation import IssuePriority


class IssueCreateRequest(BaseModel):
    issue_title: str = Field(min_length=1, max_length=200)

    @field_validator("issue_title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("issue_title must not be blank")
        return value


class IssueUpdateRequest(IssueCreateRequest):
    pass


class IssueResponse(BaseModel):
    id: uuid.UUID
    username: str
    issue_title: str
    created_at: datetime

    model_config = {"from_attributes": True}


class IssueListResponse(BaseModel):
    items: list[IssueResponse]
    total: int


class IssueCountResponse(BaseModel):
    title: str
    count: int


class IssueFeedbackCountResponse(BaseModel):
    issue_id: uuid.UUID
    issue_title: str
    feedback_count: int
    priority: IssuePriority


class IssueStatsResponse(BaseModel):
    total: int
    high_priority: int
    new_this_week: int

    model_config = {"from_attributes": True}
