import uuid
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_dashboard.api.deps import get_current_user, get_timezone
from feedback_dashboard.config import get_settings
from feedback_dashboard.database import get_db
from feedback_dashboard.models.feedback import Feedback
from feedback_dashboard.models.user import User
from feedback_dashboard.schemas.feedback import (
    FeedbackCreateRequest,
    FeedbackPageResponse,
    FeedbackResponse,
    FeedbackSearchResponse,
    PageMeta,
)
from feedback_dashboard.services import filters
from feedback_dashboard.services.feedback import FeedbackService
from feedback_dashboard.services.filters import FilterState
from feedback_dashboard.services.pagination import Paginator

router = APIRouter(prefix="/feedback", tags=["Feedback"])


def _page_meta(paginator: Paginator) -> PageMeta:
    return PageMeta(
        page=paginator.current_page,
        page_size=paginator.page_size,
        total=paginator.total_count,
        total_pages=paginator.total_pages,
        range_start=paginator.range_start,
        range_end=paginator.range_end,
        prev_disabled=paginator.prev_disabled,
        next_disabled=paginator.next_disabled,
    )


def _to_response(fb: Feedback) -> FeedbackResponse:
    return FeedbackResponse.model_validate(fb)


@router.get("/", response_model=FeedbackPageResponse)
async def list_feedback(
    state: FilterState = Depends(),
    page: int = Query(default=1),
    page_size: int | None = Query(default=None, ge=1, le=100),
    tz: ZoneInfo = Depends(get_timezone),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Paginated feedback list. Pages outside the result are clamped."""
    rows, paginator = await FeedbackService.list_page(
        db=db,
        username=current_user.username,
        state=state,
        page=page,
        page_size=page_size or get_settings().FEEDBACK_PAGE_SIZE,
        now=datetime.now(timezone.utc),
        tz=tz,
    )
    return FeedbackPageResponse(
        items=[_to_response(fb) for fb in rows],
        page=_page_meta(paginator),
        filters=state,
    )


@router.get("/search", response_model=FeedbackSearchResponse)
async def search_feedback(
    state: FilterState = Depends(),
    tz: ZoneInfo = Depends(get_timezone),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Advanced search; an empty form returns no rows without querying."""
    rows = await FeedbackService.search(
        db=db,
        username=current_user.username,
        state=state,
        now=datetime.now(timezone.utc),
        tz=tz,
        limit=get_settings().SEARCH_RESULT_LIMIT,
    )
    return FeedbackSearchResponse(
        items=[_to_response(fb) for fb in rows],
        active=filters.is_active(state),
        active_filters=filters.active_filter_count(state),
        filters=state,
    )


@router.post("/", response_model=FeedbackResponse, status_code=201)
async def create_feedback(
    body: FeedbackCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Store a received feedback for the current user."""
    feedback = await FeedbackService.create(db, current_user, body.model_dump())
    return _to_response(feedback)


@router.get("/{feedback_id}", response_model=FeedbackResponse)
async def get_feedback(
    feedback_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    feedback = await FeedbackService.get(db, current_user.username, feedback_id)
    return _to_response(feedback)


@router.post("/{feedback_id}/processed", response_model=FeedbackResponse)
async def mark_feedback_processed(
    feedback_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark as read. There is no way to mark a feedback unread again."""
    feedback = await FeedbackService.mark_processed(db, current_user.username, feedback_id)
    return _to_response(feedback)


@router.delete("/{feedback_id}", status_code=204)
async def delete_feedback(
    feedback_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await FeedbackService.delete(db, current_user.username, feedback_id)
