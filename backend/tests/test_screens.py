"""Tests for the feedback list and registration screen controllers."""
import asyncio

import pytest

from feedback_dashboard.services.filters import FILTER_FIELDS, FilterState
from feedback_dashboard.services.screens import FeedbackListScreen, UsernameCheck

CHANGED_VALUES = {
    "query": "login",
    "rating": "4",
    "date_range": "week",
    "sender": "bob",
    "sort_by": "subject",
    "sort_order": "asc",
}


class FakeBackend:
    def __init__(self, total=23):
        self.total = total
        self.calls: list[tuple[FilterState, int, int]] = []
        self.marked: list[int] = []
        self.fail_fetch = False
        self.fail_mark = False

    async def fetch_page(self, state, page, page_size):
        self.calls.append((state, page, page_size))
        if self.fail_fetch:
            raise RuntimeError("backend unavailable")
        start = (page - 1) * page_size
        rows = [
            {"id": i, "processed_at": None}
            for i in range(start, min(start + page_size, self.total))
        ]
        return rows, self.total

    async def mark_processed(self, row_id):
        if self.fail_mark:
            raise RuntimeError("write refused")
        self.marked.append(row_id)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def screen(backend):
    return FeedbackListScreen(
        backend.fetch_page, backend.mark_processed, page_size=10, debounce_seconds=0.02
    )


class TestFeedbackListScreen:
    @pytest.mark.asyncio
    async def test_typing_burst_issues_one_fetch(self, screen, backend):
        for text in ("l", "lo", "log", "logi", "login"):
            screen.update_filter("query", text)
        await screen.debouncer.wait()

        assert len(backend.calls) == 1
        assert backend.calls[0][0].query == "login"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", FILTER_FIELDS)
    async def test_filter_change_resets_to_first_page(self, screen, backend, name):
        await screen.refresh()
        await screen.go_to_page(3)
        assert screen.state.pagination.current_page == 3

        screen.update_filter(name, CHANGED_VALUES[name])
        assert screen.state.pagination.current_page == 1
        await screen.debouncer.wait()

        state, page, _ = backend.calls[-1]
        assert getattr(state, name) == CHANGED_VALUES[name]
        assert page == 1

    @pytest.mark.asyncio
    async def test_paging_clamps_to_known_range(self, screen, backend):
        await screen.refresh()
        await screen.go_to_page(9)
        assert screen.state.pagination.current_page == 3
        assert len(screen.state.rows) == 3
        assert screen.state.pagination.next_disabled
        await screen.prev_page()
        assert screen.state.pagination.current_page == 2

    @pytest.mark.asyncio
    async def test_clear_filters(self, screen, backend):
        screen.update_filter("sender", "bob")
        screen.clear_filters()
        await screen.debouncer.wait()
        assert screen.state.filters == FilterState()
        assert backend.calls[-1][0] == FilterState()

    def test_unknown_filter_field(self, screen):
        with pytest.raises(ValueError):
            screen.update_filter("colour", "red")

    @pytest.mark.asyncio
    async def test_stale_response_is_ignored(self, backend):
        release_slow = asyncio.Event()

        async def fetch(state, page, page_size):
            if state.query == "slow":
                await release_slow.wait()
                return [{"id": "slow"}], 1
            return [{"id": "fast"}], 1

        screen = FeedbackListScreen(fetch)
        slow = asyncio.create_task(screen.refresh(FilterState(query="slow")))
        await asyncio.sleep(0)
        assert await screen.refresh(FilterState(query="fast"))
        release_slow.set()

        assert await slow is False
        assert screen.state.rows == [{"id": "fast"}]

    @pytest.mark.asyncio
    async def test_failed_fetch_keeps_rows_and_sets_notice(self, screen, backend):
        await screen.refresh()
        rows = list(screen.state.rows)
        backend.fail_fetch = True

        assert not await screen.refresh()
        assert screen.state.rows == rows
        assert screen.state.loading is False
        assert "backend unavailable" in screen.state.notice.description
        screen.dismiss_notice()
        assert screen.state.notice is None

    @pytest.mark.asyncio
    async def test_skip_when_inactive(self, backend):
        screen = FeedbackListScreen(backend.fetch_page, skip_when_inactive=True)
        assert await screen.refresh()
        assert backend.calls == []
        assert screen.state.rows == []


class TestMarkProcessed:
    @pytest.mark.asyncio
    async def test_optimistic_update(self, screen, backend):
        await screen.refresh()
        assert await screen.mark_processed(0)
        assert screen.state.rows[0]["processed_at"] is not None
        assert backend.marked == [0]
        assert screen.state.notice.variant == "default"

    @pytest.mark.asyncio
    async def test_rolls_back_on_failure(self, screen, backend):
        await screen.refresh()
        backend.fail_mark = True

        assert not await screen.mark_processed(1)
        assert screen.state.rows[1]["processed_at"] is None
        assert screen.state.notice.variant == "destructive"

    @pytest.mark.asyncio
    async def test_already_processed_is_a_no_op(self, screen, backend):
        await screen.refresh()
        await screen.mark_processed(2)
        await screen.mark_processed(2)
        assert backend.marked == [2]

    @pytest.mark.asyncio
    async def test_unknown_row(self, screen):
        await screen.refresh()
        assert not await screen.mark_processed("missing")


class TestUsernameCheck:
    @pytest.mark.asyncio
    async def test_short_names_are_not_checked(self):
        checked = []

        async def check(name):
            checked.append(name)
            return True

        field = UsernameCheck(check, debounce_seconds=0.01)
        field.update("ab")
        await asyncio.sleep(0.03)

        assert field.status == "idle"
        assert checked == []
        assert not field.can_submit

    @pytest.mark.asyncio
    async def test_available_after_debounce(self):
        checked = []

        async def check(name):
            checked.append(name)
            return name != "admin"

        field = UsernameCheck(check, debounce_seconds=0.01)
        for partial in ("ali", "alic", "alice"):
            field.update(partial)
        assert field.status == "checking"
        await field.debouncer.wait()

        assert checked == ["alice"]
        assert field.status == "available"
        assert field.can_submit

    @pytest.mark.asyncio
    async def test_taken(self):
        async def check(name):
            return False

        field = UsernameCheck(check, debounce_seconds=0.01)
        field.update("admin")
        await field.debouncer.wait()

        assert field.status == "taken"
        assert not field.can_submit

    @pytest.mark.asyncio
    async def test_check_failure_returns_to_idle(self):
        async def check(name):
            raise RuntimeError("network down")

        field = UsernameCheck(check, debounce_seconds=0.01)
        field.update("alice")
        await field.debouncer.wait()

        assert field.status == "idle"


def test_defaults_come_from_settings(backend):
    screen = FeedbackListScreen(backend.fetch_page)
    assert screen.state.pagination.page_size == 10
    assert screen.debouncer.delay == 0.3
    assert UsernameCheck(backend.fetch_page).debouncer.delay == 0.5
