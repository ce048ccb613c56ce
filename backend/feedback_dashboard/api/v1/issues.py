import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_dashboard.api.deps import get_current_user
from feedback_dashboard.database import get_db
from feedback_dashboard.models.user import User
from feedback_dashboard.schemas.issue import (
    IssueCountResponse,
    IssueCreateRequest,
    IssueFeedbackCountResponse,
    IssueListResponse,
    IssueResponse,
    IssueStatsResponse,
    IssueUpdateRequest,
)
from feedback_dashboard.services import aggregation
from feedback_dashboard.services.issue import IssueService

router = APIRouter(prefix="/issues", tags=["Issues"])


@router.get("/", response_model=IssueListResponse)
async def list_issues(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    issues = await IssueService.list_issues(db, current_user.username)
    return IssueListResponse(
        items=[IssueResponse.model_validate(i) for i in issues],
        total=len(issues),
    )


@router.get("/top", response_model=list[IssueCountResponse])
async def top_issues(
    limit: int = Query(default=3, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Most reported issue titles."""
    ranked = await IssueService.top(db, current_user.username, limit)
    return [IssueCountResponse(title=title, count=count) for title, count in ranked]


@router.get("/feedback-counts", response_model=list[IssueFeedbackCountResponse])
async def issue_feedback_counts(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """How many feedback summaries mention each issue."""
    pairs = await IssueService.feedback_counts(db, current_user.username)
    return [
        IssueFeedbackCountResponse(
            issue_id=issue.id,
            issue_title=issue.issue_title,
            feedback_count=count,
            priority=aggregation.issue_priority(count),
        )
        for issue, count in pairs
    ]


@router.get("/stats", response_model=IssueStatsResponse)
async def issue_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """High-priority and new-this-week counts."""
    stats = await IssueService.stats(db, current_user.username, datetime.now(timezone.utc))
    return IssueStatsResponse.model_validate(stats)


@router.post("/", response_model=IssueResponse, status_code=201)
async def create_issue(
    body: IssueCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await IssueService.create(db, current_user.username, body.issue_title)


@router.patch("/{issue_id}", response_model=IssueResponse)
async def rename_issue(
    issue_id: uuid.UUID,
    body: IssueUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await IssueService.rename(db, current_user.username, issue_id, body.issue_title)


@router.delete("/{issue_id}", status_code=204)
async def delete_issue(
    issue_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await IssueService.delete(db, current_user.username, issue_id)
