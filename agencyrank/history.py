"""
Change history over a named time range, for one agency or a search term.

Falls back to a fixed monthly sample series when the upstream fails, so
the caller can still render something alongside a warning.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from .client import MetricsClient
from .errors import UpstreamError
from .logger import get_logger
from .models import ChangePoint

RANGES = ("1month", "6months", "1year", "5years", "all")
DEFAULT_RANGE = "1year"

SAMPLE_SERIES = (
    ChangePoint("2024-01-01", 10),
    ChangePoint("2024-02-01", 14),
    ChangePoint("2024-03-01", 7),
    ChangePoint("2024-04-01", 18),
    ChangePoint("2024-05-01", 9),
    ChangePoint("2024-06-01", 22),
    ChangePoint("2024-07-01", 15),
    ChangePoint("2024-08-01", 11),
)


@dataclass(frozen=True)
class ChangeHistory:
    slug: Optional[str]
    range_name: str
    points: Tuple[ChangePoint, ...]
    degraded: bool = False
    query: Optional[str] = None

    @property
    def subject(self) -> str:
        """Human label for what the series counts."""
        parts = []
        if self.query:
            parts.append(f'"{self.query}"')
        if self.slug:
            parts.append(self.slug)
        return " in ".join(parts)

    @property
    def total(self) -> int:
        return sum(p.count for p in self.points)


def _months_back(today: date, months: int) -> date:
    month_index = today.year * 12 + (today.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    # Clamp the day for shorter months (e.g. Mar 31 -> Feb 28)
    for day in (today.day, 30, 29, 28):
        try:
            return date(year, month, day)
        except ValueError:
            continue
    raise AssertionError("unreachable")


def window_for_range(range_name: str, today: Optional[date] = None) -> Tuple[Optional[date], Optional[date]]:
    """
    Map a range name to (start, end) dates, both inclusive.

    'all' has no bounds. Unknown names raise ValueError.
    """
    today = today or date.today()
    months = {"1month": 1, "6months": 6, "1year": 12, "5years": 60}
    if range_name == "all":
        return None, None
    if range_name not in months:
        raise ValueError(f"Unknown range {range_name!r}; use one of {', '.join(RANGES)}")
    return _months_back(today, months[range_name]), today


def load_change_history(
    client: MetricsClient,
    slug: Optional[str] = None,
    range_name: str = DEFAULT_RANGE,
    today: Optional[date] = None,
    query: Optional[str] = None,
) -> ChangeHistory:
    """
    Daily change counts over range_name.

    With only a query the series spans all agencies; with a slug it is
    scoped to that agency. Upstream failures return the sample series
    marked degraded.
    """
    if not slug and not query:
        raise ValueError("Need an agency slug, a search query, or both")
    start, end = window_for_range(range_name, today)
    try:
        points = client.fetch_daily_series(
            slug,
            start=start.isoformat() if start else None,
            end=end.isoformat() if end else None,
            query=query,
        )
    except UpstreamError as e:
        get_logger().warning(
            "Change history unavailable, using sample series",
            slug=slug,
            query=query,
            range=range_name,
            error_type=type(e).__name__,
            error=str(e),
        )
        sample = SAMPLE_SERIES
        if start is not None:
            sample = tuple(p for p in SAMPLE_SERIES if p.date >= start.isoformat())
        return ChangeHistory(slug=slug, range_name=range_name, points=sample, degraded=True, query=query)

    return ChangeHistory(slug=slug, range_name=range_name, points=tuple(points), query=query)
