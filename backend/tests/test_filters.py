"""Tests for the feedback search composer."""
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from conftest import NOW, make_feedback
from feedback_dashboard.models.feedback import Feedback
from feedback_dashboard.services import filters
from feedback_dashboard.services.filters import FilterState

SEOUL = ZoneInfo("Asia/Seoul")


def matching_ratings(band, ratings):
    query = filters.compose(FilterState(rating=band), NOW, timezone.utc)
    return {r for r in ratings if query.matches(make_feedback(r))}


class TestRatingBands:
    def test_band_3_is_half_open(self):
        assert matching_ratings("3", [2.4, 2.5, 3.4, 3.5]) == {2.5, 3.4}

    def test_band_4_upper_bound_excludes_4_5(self):
        assert matching_ratings("4", [4.4, 4.5, 4.6, 3.9]) == {4.4, 3.9}

    def test_band_5_has_no_upper_bound(self):
        assert matching_ratings("5", [4.4, 4.5, 5.0]) == {4.5, 5.0}

    def test_band_1_has_no_lower_bound(self):
        assert matching_ratings("1", [0, 1.49, 1.5]) == {0, 1.49}

    def test_unrated_never_matches_a_band(self):
        for band in ("1", "2", "3", "4", "5"):
            query = filters.compose(FilterState(rating=band), NOW, timezone.utc)
            assert not query.matches(make_feedback(None))

    def test_unknown_band_is_rejected(self):
        with pytest.raises(ValidationError):
            FilterState(rating="6")


class TestDateRange:
    def test_today_starts_at_local_midnight(self):
        start = filters.date_range_start("today", NOW, SEOUL)
        assert start == datetime(2026, 3, 19, 0, 0, tzinfo=SEOUL)

    def test_week(self):
        assert filters.date_range_start("week", NOW, timezone.utc) == NOW - timedelta(days=7)

    def test_month_is_calendar_month(self):
        start = filters.date_range_start("month", NOW, timezone.utc)
        assert start == datetime(2026, 2, 18, 15, 30, tzinfo=timezone.utc)

    def test_month_clamps_day(self):
        moment = datetime(2026, 3, 31, 12, tzinfo=timezone.utc)
        assert filters.subtract_months(moment, 1).day == 28
        assert filters.subtract_months(moment, 3) == datetime(2025, 12, 31, 12, tzinfo=timezone.utc)

    def test_year(self):
        start = filters.date_range_start("year", NOW, timezone.utc)
        assert start == datetime(2025, 3, 18, 15, 30, tzinfo=timezone.utc)

    def test_all_has_no_bound(self):
        assert filters.date_range_start("all", NOW, timezone.utc) is None

    def test_range_has_no_end_bound(self):
        query = filters.compose(FilterState(date_range="week"), NOW, timezone.utc)
        assert query.matches(make_feedback(received_at=NOW + timedelta(days=1)))
        assert query.matches(make_feedback(received_at=NOW - timedelta(days=6)))
        assert not query.matches(make_feedback(received_at=NOW - timedelta(days=8)))


class TestTextMatching:
    def test_query_searches_text_fields_case_insensitively(self):
        query = filters.compose(FilterState(query="LOGIN"), NOW, timezone.utc)
        assert query.matches(make_feedback(subject="login broken"))
        assert query.matches(make_feedback(feedback_summary="Cannot Login"))
        assert not query.matches(make_feedback(subject="payment"))

    def test_sender_searches_name_and_email(self):
        query = filters.compose(FilterState(sender="bob"), NOW, timezone.utc)
        assert query.matches(make_feedback(sender_name="Bob Smith"))
        assert query.matches(make_feedback(sender_email="BOB@corp.io"))
        assert not query.matches(make_feedback(subject="bob", sender_name="Ann"))

    def test_filters_combine_with_and(self):
        state = FilterState(query="crash", rating="1")
        query = filters.compose(state, NOW, timezone.utc)
        assert query.matches(make_feedback(1.0, subject="crash"))
        assert not query.matches(make_feedback(4.0, subject="crash"))

    def test_like_wildcards_are_escaped(self):
        query = filters.compose(FilterState(query="100%"), NOW, timezone.utc)
        stmt = query.apply(select(Feedback), Feedback)
        compiled = stmt.compile(dialect=postgresql.dialect())
        assert "%100\\%%" in compiled.params.values()


class TestActivity:
    def test_defaults_are_inactive(self):
        assert not filters.is_active(FilterState())
        assert filters.compose(FilterState(), NOW, timezone.utc).predicates == ()

    def test_sorting_alone_is_not_a_filter(self):
        state = FilterState(sort_by="average_rating", sort_order="asc")
        assert not filters.is_active(state)
        assert filters.active_filter_count(state) == 0

    def test_whitespace_query_is_inactive(self):
        assert not filters.is_active(FilterState(query="   "))

    def test_active_filter_count(self):
        state = FilterState(query="x", rating="5", date_range="week", sender="y")
        assert filters.is_active(state)
        assert filters.active_filter_count(state) == 4


class TestOrdering:
    def test_order_clause(self):
        query = filters.compose(
            FilterState(sort_by="average_rating", sort_order="asc"), NOW, timezone.utc
        )
        assert query.sort_by == "average_rating"
        assert query.descending is False
        sql = str(query.apply(select(Feedback), Feedback).compile(dialect=postgresql.dialect()))
        assert "ORDER BY feedbacks.average_rating ASC, feedbacks.id ASC" in sql

    def test_limit(self):
        query = filters.compose(FilterState(query="a"), NOW, timezone.utc, limit=50)
        sql = str(query.apply(select(Feedback), Feedback).compile(dialect=postgresql.dialect()))
        assert "LIMIT" in sql
