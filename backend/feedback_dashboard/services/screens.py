"""Per-screen state controllers.

Each controller owns one serializable state object and changes it only
through named transitions, so the page-reset and clamping rules hold no
matter which input triggered the change. Data access is injected as plain
async callables; tests pass fakes, the HTTP client passes real fetchers.
"""
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field

from feedback_dashboard.config import get_settings
from feedback_dashboard.services import filters
from feedback_dashboard.services.debounce import Debouncer
from feedback_dashboard.services.filters import FILTER_FIELDS, FilterState
from feedback_dashboard.services.pagination import Paginator

logger = logging.getLogger(__name__)

FetchPage = Callable[[FilterState, int, int], Awaitable[tuple[list[dict[str, Any]], int]]]
MarkProcessed = Callable[[Any], Awaitable[Any]]
CheckUsername = Callable[[str], Awaitable[bool]]


class Notice(BaseModel):
    """A toast-style message; `destructive` marks failed mutations."""

    title: str
    description: str = ""
    variant: Literal["default", "destructive"] = "default"


class FeedbackListState(BaseModel):
    filters: FilterState = Field(default_factory=FilterState)
    pagination: Paginator = Field(default_factory=Paginator)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    loading: bool = False
    notice: Notice | None = None


class FeedbackListScreen:
    def __init__(
        self,
        fetch_page: FetchPage,
        mark_processed: MarkProcessed | None = None,
        page_size: int | None = None,
        debounce_seconds: float | None = None,
        skip_when_inactive: bool = False,
    ):
        settings = get_settings()
        if page_size is None:
            page_size = settings.FEEDBACK_PAGE_SIZE
        if debounce_seconds is None:
            debounce_seconds = settings.SEARCH_DEBOUNCE_MS / 1000
        self._fetch_page = fetch_page
        self._mark_processed = mark_processed
        self.skip_when_inactive = skip_when_inactive
        self.state = FeedbackListState(pagination=Paginator(page_size=page_size))
        self._latest_request = 0
        self._debouncer: Debouncer[FilterState] = Debouncer(
            debounce_seconds, self.refresh
        )

    @property
    def debouncer(self) -> Debouncer[FilterState]:
        return self._debouncer

    def update_filter(self, name: str, value: Any) -> None:
        """Apply a filter change now; the fetch follows after the debounce window."""
        if name not in FILTER_FIELDS:
            raise ValueError(f"Unknown filter field: {name}")
        setattr(self.state.filters, name, value)
        self.state.pagination.reset()
        self._debouncer.trigger(self.state.filters.model_copy())

    def clear_filters(self) -> None:
        self.state.filters = FilterState()
        self.state.pagination.reset()
        self._debouncer.trigger(self.state.filters.model_copy())

    async def go_to_page(self, page: int) -> bool:
        self.state.pagination.go_to(page)
        return await self.refresh()

    async def next_page(self) -> bool:
        return await self.go_to_page(self.state.pagination.current_page + 1)

    async def prev_page(self) -> bool:
        return await self.go_to_page(self.state.pagination.current_page - 1)

    async def refresh(self, state: FilterState | None = None) -> bool:
        """Fetch the current page. Returns False when the result was not applied."""
        state = state or self.state.filters.model_copy()
        self._latest_request += 1
        request_id = self._latest_request

        if self.skip_when_inactive and not filters.is_active(state):
            self.state.rows = []
            self.state.pagination.set_total(0)
            self.state.loading = False
            return True

        pagination = self.state.pagination
        self.state.loading = True
        try:
            rows, total = await self._fetch_page(
                state, pagination.current_page, pagination.page_size
            )
        except Exception as e:
            if request_id == self._latest_request:
                self.state.loading = False
                self.state.notice = Notice(
                    title="Could not load feedback", description=str(e)
                )
            logger.warning("Feedback fetch %d failed: %s", request_id, e)
            return False

        if request_id != self._latest_request:
            logger.debug("Ignoring stale feedback response %d", request_id)
            return False

        self.state.rows = list(rows)
        pagination.set_total(total)
        self.state.loading = False
        return True

    async def mark_processed(self, row_id: Any) -> bool:
        """Optimistically mark a row as read; restore it if the backend refuses."""
        if self._mark_processed is None:
            raise RuntimeError("mark_processed is not configured for this screen")
        row = next((r for r in self.state.rows if r.get("id") == row_id), None)
        if row is None:
            return False
        if row.get("processed_at") is not None:
            return True

        row["processed_at"] = datetime.now(timezone.utc)
        try:
            await self._mark_processed(row_id)
        except Exception as e:
            row["processed_at"] = None
            self.state.notice = Notice(
                title="Error", description=str(e), variant="destructive"
            )
            logger.warning("Mark processed failed for %s: %s", row_id, e)
            return False

        self.state.notice = Notice(title="Feedback marked as read")
        return True

    def dismiss_notice(self) -> None:
        self.state.notice = None


UsernameStatus = Literal["idle", "checking", "available", "taken"]


class UsernameCheck:
    """Registration form's username field with a debounced availability check."""

    def __init__(
        self,
        check: CheckUsername,
        debounce_seconds: float | None = None,
        min_length: int = 3,
    ):
        if debounce_seconds is None:
            debounce_seconds = get_settings().USERNAME_CHECK_DEBOUNCE_MS / 1000
        self._check = check
        self.min_length = min_length
        self.username = ""
        self.status: UsernameStatus = "idle"
        self._debouncer: Debouncer[str] = Debouncer(debounce_seconds, self._run)

    @property
    def debouncer(self) -> Debouncer[str]:
        return self._debouncer

    @property
    def can_submit(self) -> bool:
        return self.status == "available"

    def update(self, username: str) -> None:
        self.username = username
        if len(username) >= self.min_length:
            self.status = "checking"
            self._debouncer.trigger(username)
        else:
            self._debouncer.cancel()
            self.status = "idle"

    async def _run(self, username: str) -> None:
        try:
            available = await self._check(username)
        except Exception as e:
            logger.warning("Username check failed for %s: %s", username, e)
            if username == self.username:
                self.status = "idle"
            return
        if username != self.username:
            return
        self.status = "available" if available else "taken"
