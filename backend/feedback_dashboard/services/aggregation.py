"""Pure aggregation over feedback and issue rows.

Every function here takes already-fetched rows (ORM objects or plain
mappings) and returns immutable view-models. Nothing here performs I/O or
mutates its input, so calling a function twice with the same rows yields
equal results.

A row whose ``average_rating`` is ``None`` is unrated: it is excluded from
sentiment buckets, averages and the star distribution. A rating of ``0`` is
a real rating and counts as Negative.
"""
import math
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Literal, NamedTuple

POSITIVE_THRESHOLD = 4.0
NEUTRAL_THRESHOLD = 2.5

HIGH_PRIORITY_FEEDBACK = 10
MEDIUM_PRIORITY_FEEDBACK = 5
RECENT_WINDOW = timedelta(days=7)

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def field(row: Any, name: str) -> Any:
    """Read a column from an ORM object or a mapping."""
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def rating_of(row: Any) -> float | None:
    value = field(row, "average_rating")
    if value is None:
        return None
    return float(value)


def to_local(moment: datetime, tz: tzinfo) -> datetime:
    # Naive timestamps coming back from the database are UTC.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


@dataclass(frozen=True)
class SentimentBuckets:
    positive: int = 0
    neutral: int = 0
    negative: int = 0

    @property
    def total(self) -> int:
        return self.positive + self.neutral + self.negative


@dataclass(frozen=True)
class RatingCount:
    stars: int
    label: str
    count: int


@dataclass(frozen=True)
class TimeBucket:
    day: date
    label: str
    count: int
    average_rating: float


@dataclass(frozen=True)
class HourBucket:
    hour: int
    label: str
    count: int


class IssueCount(NamedTuple):
    title: str
    count: int


def sentiment_of(rating: float) -> str:
    if rating >= POSITIVE_THRESHOLD:
        return "positive"
    if rating >= NEUTRAL_THRESHOLD:
        return "neutral"
    return "negative"


def sentiment_buckets(rows: Iterable[Any]) -> SentimentBuckets:
    counts = Counter(
        sentiment_of(rating)
        for rating in (rating_of(row) for row in rows)
        if rating is not None
    )
    return SentimentBuckets(
        positive=counts["positive"],
        neutral=counts["neutral"],
        negative=counts["negative"],
    )


def average_rating(rows: Iterable[Any]) -> float:
    """Arithmetic mean of present ratings; 0 when there are none."""
    ratings = [r for r in (rating_of(row) for row in rows) if r is not None]
    if not ratings:
        return 0.0
    return math.fsum(ratings) / len(ratings)


def rating_distribution(rows: Iterable[Any]) -> tuple[RatingCount, ...]:
    """Counts per whole star; ratings below 1 fall outside every bucket."""
    counts: Counter[int] = Counter()
    for row in rows:
        rating = rating_of(row)
        if rating is None or rating < 1:
            continue
        counts[min(5, math.floor(rating))] += 1
    return tuple(
        RatingCount(
            stars=stars,
            label=f"{stars} Star{'s' if stars > 1 else ''}",
            count=counts[stars],
        )
        for stars in range(1, 6)
    )


def daily_series(
    rows: Iterable[Any],
    days: int,
    now: datetime,
    tz: tzinfo,
    weekday_labels: bool = False,
) -> tuple[TimeBucket, ...]:
    """One bucket per local calendar day in the window ending today.

    Days without feedback are present with a zero count.
    """
    if days < 1:
        return ()
    today = to_local(now, tz).date()
    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]

    grouped: dict[date, list[float | None]] = {day: [] for day in window}
    for row in rows:
        received_at = field(row, "received_at")
        if received_at is None:
            continue
        day = to_local(received_at, tz).date()
        if day in grouped:
            grouped[day].append(rating_of(row))

    buckets = []
    for day in window:
        ratings = [r for r in grouped[day] if r is not None]
        buckets.append(
            TimeBucket(
                day=day,
                label=WEEKDAY_LABELS[day.weekday()] if weekday_labels else day.isoformat(),
                count=len(grouped[day]),
                average_rating=math.fsum(ratings) / len(ratings) if ratings else 0.0,
            )
        )
    return tuple(buckets)


def weekly_series(rows: Iterable[Any], now: datetime, tz: tzinfo) -> tuple[TimeBucket, ...]:
    return daily_series(rows, 7, now, tz, weekday_labels=True)


def hourly_distribution(rows: Iterable[Any], tz: tzinfo) -> tuple[HourBucket, ...]:
    counts: Counter[int] = Counter()
    for row in rows:
        received_at = field(row, "received_at")
        if received_at is not None:
            counts[to_local(received_at, tz).hour] += 1
    return tuple(
        HourBucket(hour=hour, label=f"{hour}:00", count=counts[hour])
        for hour in range(24)
    )


def top_issues(issues: Iterable[Any], limit: int) -> list[IssueCount]:
    """Most frequent issue titles, exact match, first-seen order on ties."""
    counts = Counter(field(issue, "issue_title") for issue in issues)
    # Counter keeps first-insertion order and sorted() is stable.
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [IssueCount(title, count) for title, count in ranked[: max(limit, 0)]]


def issue_feedback_counts(
    issues: Iterable[Any], feedbacks: Sequence[Any]
) -> dict[Any, int]:
    """Per issue id, how many feedback summaries mention the issue title."""
    summaries = [
        summary.lower()
        for summary in (field(fb, "feedback_summary") for fb in feedbacks)
        if summary
    ]
    counts = {}
    for issue in issues:
        needle = (field(issue, "issue_title") or "").lower()
        counts[field(issue, "id")] = (
            sum(1 for summary in summaries if needle in summary) if needle else 0
        )
    return counts


IssuePriority = Literal["high", "medium", "low"]


def issue_priority(feedback_count: int) -> IssuePriority:
    if feedback_count >= HIGH_PRIORITY_FEEDBACK:
        return "high"
    if feedback_count >= MEDIUM_PRIORITY_FEEDBACK:
        return "medium"
    return "low"


def _newer_than(row: Any, column: str, cutoff: datetime) -> bool:
    moment = field(row, column)
    return moment is not None and to_local(moment, timezone.utc) > cutoff


@dataclass(frozen=True)
class IssueStats:
    total: int
    high_priority: int
    new_this_week: int


def issue_stats(
    issues: Sequence[Any], feedback_counts: Mapping[Any, int], now: datetime
) -> IssueStats:
    cutoff = to_local(now, timezone.utc) - RECENT_WINDOW
    return IssueStats(
        total=len(issues),
        high_priority=sum(
            1
            for issue in issues
            if issue_priority(feedback_counts.get(field(issue, "id"), 0)) == "high"
        ),
        new_this_week=sum(1 for issue in issues if _newer_than(issue, "created_at", cutoff)),
    )


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def response_rate(feedbacks: Sequence[Any]) -> int:
    """Percentage of feedback already processed; 0 for no feedback."""
    if not feedbacks:
        return 0
    processed = sum(1 for fb in feedbacks if field(fb, "processed_at") is not None)
    return _round_half_up(processed / len(feedbacks) * 100)


def feedback_trend(this_week: int, total: int) -> int:
    """This week's count against everything older, in percent.

    0 when nothing arrived this week; an empty history counts as 1.
    """
    if this_week == 0:
        return 0
    older = total - this_week
    return _round_half_up((this_week - older) / max(older, 1) * 100)


@dataclass(frozen=True)
class Overview:
    total_feedback: int
    unread_feedback: int
    average_rating: float
    sentiment: SentimentBuckets
    recent_feedback: tuple[Any, ...]
    top_issues: tuple[IssueCount, ...]
    total_issues: int
    response_rate: int = 0
    this_week_count: int = 0
    this_month_count: int = 0
    feedback_trend: int = 0


def _received_key(row: Any) -> datetime:
    received_at = field(row, "received_at")
    if received_at is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return to_local(received_at, timezone.utc)


def overview(
    feedbacks: Sequence[Any],
    issues: Sequence[Any],
    now: datetime | None = None,
    recent: int = 5,
    top: int = 3,
) -> Overview:
    now = to_local(now or datetime.now(timezone.utc), timezone.utc)
    newest_first = sorted(feedbacks, key=_received_key, reverse=True)
    this_week = sum(1 for fb in feedbacks if _newer_than(fb, "received_at", now - RECENT_WINDOW))
    this_month = sum(
        1 for fb in feedbacks if _newer_than(fb, "received_at", now - timedelta(days=30))
    )
    return Overview(
        total_feedback=len(feedbacks),
        unread_feedback=sum(1 for fb in feedbacks if field(fb, "processed_at") is None),
        average_rating=average_rating(feedbacks),
        sentiment=sentiment_buckets(feedbacks),
        recent_feedback=tuple(newest_first[:recent]),
        top_issues=tuple(top_issues(issues, top)),
        total_issues=len(issues),
        response_rate=response_rate(feedbacks),
        this_week_count=this_week,
        this_month_count=this_month,
        feedback_trend=feedback_trend(this_week, len(feedbacks)),
    )
