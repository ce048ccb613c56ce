from datetime import date

from pydantic import BaseModel

from feedback_dashboard.schemas.feedback import FeedbackResponse
from feedback_dashboard.schemas.issue import IssueCountResponse


class SentimentResponse(BaseModel):
    positive: int
    neutral: int
    negative: int

    model_config = {"from_attributes": True}


class RatingCountResponse(BaseModel):
    stars: int
    label: str
    count: int

    model_config = {"from_attributes": True}


class TimeBucketResponse(BaseModel):
    day: date
    label: str
    count: int
    average_rating: float

    model_config = {"from_attributes": True}


class HourBucketResponse(BaseModel):
    hour: int
    label: str
    count: int

    model_config = {"from_attributes": True}


class OverviewResponse(BaseModel):
    total_feedback: int
    unread_feedback: int
    average_rating: float
    total_issues: int
    response_rate: int
    this_week_count: int
    this_month_count: int
    feedback_trend: int
    team_size: int
    sentiment: SentimentResponse
    recent_feedback: list[FeedbackResponse]
    top_issues: list[IssueCountResponse]


class AnalyticsResponse(BaseModel):
    timezone: str
    total_feedback: int
    average_rating: float
    sentiment: SentimentResponse
    rating_distribution: list[RatingCountResponse]
    daily: list[TimeBucketResponse]
    weekly: list[TimeBucketResponse]
    hourly: list[HourBucketResponse]
