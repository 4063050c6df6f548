from collections import Counter
from datetime import datetime, timezone
from typing import Iterable

from insta_lens.models import Post

_TIME_SLOTS = [
    ("00-04", 0), ("04-08", 4), ("08-12", 8),
    ("12-16", 12), ("16-20", 16), ("20-24", 20),
]


def _hour_to_slot(hour: int) -> str:
    for label, start in reversed(_TIME_SLOTS):
        if hour >= start:
            return label
    return "00-04"


def to_utc(ts: int | float) -> datetime | None:
    """UTC datetime for a Unix timestamp, or None when it is missing or out of range."""
    if not ts:
        return None
    try:
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _dates(posts: Iterable[Post]) -> list[datetime]:
    return [dt for p in posts if (dt := to_utc(p.timestamp)) is not None]


def compute_posting_patterns(posts: Iterable[Post]) -> dict[str, dict[str, int]]:
    """Peak posting days and 4-hour time slots (UTC) from post timestamps."""
    days: Counter = Counter()
    hours: Counter = Counter()
    for dt in _dates(posts):
        days[dt.strftime("%A")] += 1
        hours[_hour_to_slot(dt.hour)] += 1
    return {"peak_days": dict(days), "peak_hours": dict(hours)}


def posting_heatmap(posts: Iterable[Post]) -> list[dict[str, int]]:
    """Day-of-week x hour counts, ``day`` 0 = Sunday, sorted by (day, hour)."""
    cells: Counter = Counter()
    for dt in _dates(posts):
        cells[(dt.isoweekday() % 7, dt.hour)] += 1
    return [
        {"day": day, "hour": hour, "count": count}
        for (day, hour), count in sorted(cells.items())
    ]
