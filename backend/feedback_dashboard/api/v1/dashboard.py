from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedback_dashboard.api.deps import get_current_user, get_session_factory, get_timezone
from feedback_dashboard.models.user import User
from feedback_dashboard.schemas.dashboard import (
    AnalyticsResponse,
    HourBucketResponse,
    OverviewResponse,
    RatingCountResponse,
    SentimentResponse,
    TimeBucketResponse,
)
from feedback_dashboard.schemas.feedback import FeedbackResponse
from feedback_dashboard.schemas.issue import IssueCountResponse
from feedback_dashboard.services.dashboard import DashboardService

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    current_user: User = Depends(get_current_user),
):
    """Headline numbers, recent feedback and the most reported issues."""
    summary, team_size = await DashboardService.overview(
        session_factory, current_user.username, now=datetime.now(timezone.utc)
    )
    return OverviewResponse(
        total_feedback=summary.total_feedback,
        unread_feedback=summary.unread_feedback,
        average_rating=round(summary.average_rating, 2),
        total_issues=summary.total_issues,
        response_rate=summary.response_rate,
        this_week_count=summary.this_week_count,
        this_month_count=summary.this_month_count,
        feedback_trend=summary.feedback_trend,
        team_size=team_size,
        sentiment=SentimentResponse.model_validate(summary.sentiment),
        recent_feedback=[FeedbackResponse.model_validate(fb) for fb in summary.recent_feedback],
        top_issues=[
            IssueCountResponse(title=title, count=count)
            for title, count in summary.top_issues
        ],
    )


@router.get("/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    days: int = Query(default=30, ge=1, le=366),
    tz: ZoneInfo = Depends(get_timezone),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    current_user: User = Depends(get_current_user),
):
    """Chart data bucketed in the viewer's time zone."""
    analytics = await DashboardService.analytics(
        session_factory,
        current_user.username,
        now=datetime.now(timezone.utc),
        tz=tz,
        days=days,
    )
    return AnalyticsResponse(
        timezone=tz.key,
        total_feedback=analytics.total_feedback,
        average_rating=round(analytics.average_rating, 2),
        sentiment=SentimentResponse.model_validate(analytics.sentiment),
        rating_distribution=[
            RatingCountResponse.model_validate(r) for r in analytics.rating_distribution
        ],
        daily=[TimeBucketResponse.model_validate(b) for b in analytics.daily],
        weekly=[TimeBucketResponse.model_validate(b) for b in analytics.weekly],
        hourly=[HourBucketResponse.model_validate(b) for b in analytics.hourly],
    )
