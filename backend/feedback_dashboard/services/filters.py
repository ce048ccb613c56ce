"""Turn the feedback search form into a query description.

`compose()` produces a `FeedbackQuery`: a tuple of predicates plus an order
clause. The same description is compiled to SQLAlchemy conditions for the
database and evaluated in memory by `matches()`.
"""
import calendar
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Literal

from pydantic import BaseModel
from sqlalchemy import ColumnElement, Select, and_, or_

from feedback_dashboard.services.aggregation import field, to_local

RatingBand = Literal["all", "1", "2", "3", "4", "5"]
DateRange = Literal["all", "today", "week", "month", "3months", "year"]
SortField = Literal[
    "received_at",
    "average_rating",
    "sender_name",
    "sender_email",
    "subject",
    "processed_at",
]
SortOrder = Literal["asc", "desc"]

# (lower inclusive, upper exclusive); None is unbounded.
RATING_BANDS: dict[str, tuple[float | None, float | None]] = {
    "5": (4.5, None),
    "4": (3.5, 4.5),
    "3": (2.5, 3.5),
    "2": (1.5, 2.5),
    "1": (None, 1.5),
}

TEXT_SEARCH_FIELDS = ("subject", "sender_name", "sender_email", "feedback_summary")
SENDER_SEARCH_FIELDS = ("sender_name", "sender_email")


class FilterState(BaseModel):
    query: str = ""
    rating: RatingBand = "all"
    date_range: DateRange = "all"
    sender: str = ""
    sort_by: SortField = "received_at"
    sort_order: SortOrder = "desc"

    model_config = {"validate_assignment": True}


FILTER_FIELDS = tuple(FilterState.model_fields)


def is_active(state: FilterState) -> bool:
    """False when nothing narrows the result; sorting alone is not a filter."""
    return bool(
        state.query.strip()
        or state.sender.strip()
        or state.rating != "all"
        or state.date_range != "all"
    )


def active_filter_count(state: FilterState) -> int:
    return sum(
        (
            bool(state.query.strip()),
            bool(state.sender.strip()),
            state.rating != "all",
            state.date_range != "all",
        )
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class TextMatch:
    """Case-insensitive substring match on any of `fields`."""

    fields: tuple[str, ...]
    needle: str

    def to_condition(self, model) -> ColumnElement[bool]:
        pattern = f"%{_escape_like(self.needle)}%"
        return or_(
            *(getattr(model, name).ilike(pattern, escape="\\") for name in self.fields)
        )

    def matches(self, row: Any) -> bool:
        needle = self.needle.lower()
        return any(needle in (field(row, name) or "").lower() for name in self.fields)


@dataclass(frozen=True)
class Range:
    """`lower <= value < upper`; rows where the value is null never match."""

    field: str
    lower: Any = None
    upper: Any = None

    def to_condition(self, model) -> ColumnElement[bool]:
        column = getattr(model, self.field)
        conditions = [column.is_not(None)]
        if self.lower is not None:
            conditions.append(column >= self.lower)
        if self.upper is not None:
            conditions.append(column < self.upper)
        return and_(*conditions)

    def matches(self, row: Any) -> bool:
        value = field(row, self.field)
        if value is None:
            return False
        if isinstance(value, datetime) and isinstance(self.lower, datetime):
            value = to_local(value, self.lower.tzinfo)
        if self.lower is not None and value < self.lower:
            return False
        if self.upper is not None and value >= self.upper:
            return False
        return True


Predicate = TextMatch | Range


@dataclass(frozen=True)
class FeedbackQuery:
    predicates: tuple[Predicate, ...]
    sort_by: str = "received_at"
    descending: bool = True
    limit: int | None = None

    def conditions(self, model) -> list[ColumnElement[bool]]:
        return [predicate.to_condition(model) for predicate in self.predicates]

    def order_by(self, model) -> list:
        column = getattr(model, self.sort_by)
        primary = column.desc() if self.descending else column.asc()
        # id tie-break keeps page boundaries stable
        return [primary, model.id.asc()]

    def apply(self, stmt: Select, model) -> Select:
        stmt = stmt.where(*self.conditions(model)).order_by(*self.order_by(model))
        if self.limit is not None:
            stmt = stmt.limit(self.limit)
        return stmt

    def matches(self, row: Any) -> bool:
        return all(predicate.matches(row) for predicate in self.predicates)

    def filter(self, rows: Sequence[Any]) -> list[Any]:
        return [row for row in rows if self.matches(row)]


def rating_band(selector: str) -> Range | None:
    if selector == "all":
        return None
    try:
        lower, upper = RATING_BANDS[selector]
    except KeyError:
        raise ValueError(f"Unknown rating band: {selector!r}")
    return Range("average_rating", lower, upper)


def subtract_months(moment: datetime, months: int) -> datetime:
    total = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def date_range_start(selector: str, now: datetime, tz: tzinfo) -> datetime | None:
    """Start of the selected window, relative to `now`; the end is always now."""
    local_now = to_local(now, tz)
    if selector == "all":
        return None
    if selector == "today":
        return local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    if selector == "week":
        return local_now - timedelta(days=7)
    if selector == "month":
        return subtract_months(local_now, 1)
    if selector == "3months":
        return subtract_months(local_now, 3)
    if selector == "year":
        return subtract_months(local_now, 12)
    raise ValueError(f"Unknown date range: {selector!r}")


def compose(
    state: FilterState,
    now: datetime,
    tz: tzinfo,
    limit: int | None = None,
) -> FeedbackQuery:
    predicates: list[Predicate] = []

    query = state.query.strip()
    if query:
        predicates.append(TextMatch(TEXT_SEARCH_FIELDS, query))

    band = rating_band(state.rating)
    if band is not None:
        predicates.append(band)

    start = date_range_start(state.date_range, now, tz)
    if start is not None:
        # stored timestamps are UTC
        predicates.append(Range("received_at", lower=start.astimezone(timezone.utc)))

    sender = state.sender.strip()
    if sender:
        predicates.append(TextMatch(SENDER_SEARCH_FIELDS, sender))

    return FeedbackQuery(
        predicates=tuple(predicates),
        sort_by=state.sort_by,
        descending=state.sort_order == "desc",
        limit=limit,
    )
