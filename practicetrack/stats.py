"""Practice time per day/week/month bucket."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo

from practicetrack.models import GoalPeriodUnit
from practicetrack.periods import end_of_period, local_timezone, start_of_period
from practicetrack.repository import SessionRepository


@dataclass(frozen=True)
class PeriodTotal:
    start: datetime
    end: datetime                 # exclusive
    total: timedelta


def practice_time_per_period(session_repository: SessionRepository, unit: GoalPeriodUnit,
                             count: int, reference: datetime, tz: tzinfo | None = None,
                             item_ids: Collection[str] | None = None) -> list[PeriodTotal]:
    """Totals for the `count` periods ending with the one containing `reference`.

    Oldest bucket first. Sessions land in the bucket of their earliest section,
    the same attribution goals use. With `item_ids`, only sections on those
    items are counted. Buckets follow the calendar of `tz`, the system local
    zone when not given.
    """
    if count < 1:
        raise ValueError(f"count must be positive, got {count}")
    tz = tz or local_timezone()

    buckets: list[PeriodTotal] = []
    for offset in range(1 - count, 1):
        start = start_of_period(unit, offset, reference, tz)
        end = end_of_period(unit, offset, reference, tz)
        total = timedelta(0)
        for session in session_repository.sessions_in_window(start, end):
            for section in session.sections:
                if item_ids is None or section.library_item_id in item_ids:
                    total += section.duration
        buckets.append(PeriodTotal(start=start, end=end, total=total))
    return buckets
