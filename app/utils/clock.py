"""
Time source for the engine.
Timestamps are naive UTC, matching what the DateTime columns store.
Components take a clock callable so tests can freeze and advance time.
"""

from datetime import datetime, timezone, date, timedelta
from typing import Callable, Tuple

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Half-open [start, end) datetime range covering one calendar day."""
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)
