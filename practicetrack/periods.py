"""Calendar math for day/week/month periods.

Every function is pure and takes the reference instant explicitly. Periods are
half-open: the end of period N is the start of period N + 1, so consecutive
windows tile without gaps or overlaps. Boundaries are local midnights in the
given timezone (the reference's own timezone by default); weeks start on
Monday per ISO 8601 and months on day 1.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo

from practicetrack.models import GoalPeriodUnit


def local_timezone() -> tzinfo:
    """The system local zone, used when no calendar timezone is configured."""
    return datetime.now().astimezone().tzinfo


def _local_date(reference: datetime, tz: tzinfo | None) -> tuple[date, tzinfo]:
    if reference.tzinfo is None:
        raise ValueError("reference must be timezone-aware")
    zone = tz or reference.tzinfo
    return reference.astimezone(zone).date(), zone


def _midnight(day: date, zone: tzinfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=zone)


def _add_months(day: date, months: int) -> date:
    """First day of the month `months` after day's month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def seconds_between(start: datetime, end: datetime) -> int:
    """Real elapsed whole seconds between two aware instants."""
    return int(end.timestamp() - start.timestamp())


# ── Days ────────────────────────────────────────────────────


def start_of_day(offset: int, reference: datetime, tz: tzinfo | None = None) -> datetime:
    day, zone = _local_date(reference, tz)
    return _midnight(day + timedelta(days=offset), zone)


def end_of_day(offset: int, reference: datetime, tz: tzinfo | None = None) -> datetime:
    return start_of_day(offset + 1, reference, tz)


# ── Weeks ───────────────────────────────────────────────────


def start_of_week(offset: int, reference: datetime, tz: tzinfo | None = None) -> datetime:
    return start_of_day_of_week(1, offset, reference, tz)


def end_of_week(offset: int, reference: datetime, tz: tzinfo | None = None) -> datetime:
    return start_of_week(offset + 1, reference, tz)


def start_of_day_of_week(day_index: int, week_offset: int, reference: datetime,
                         tz: tzinfo | None = None) -> datetime:
    """Start of a weekday (1=Monday .. 7=Sunday) in the week `week_offset` away."""
    if not 1 <= day_index <= 7:
        raise ValueError(f"day_index must be between 1 and 7, got {day_index}")
    day, zone = _local_date(reference, tz)
    monday = day - timedelta(days=day.weekday())
    return _midnight(monday + timedelta(weeks=week_offset, days=day_index - 1), zone)


def end_of_day_of_week(day_index: int, week_offset: int, reference: datetime,
                       tz: tzinfo | None = None) -> datetime:
    # Sunday ends at the start of next week's Monday
    if day_index == 7:
        return start_of_day_of_week(1, week_offset + 1, reference, tz)
    return start_of_day_of_week(day_index + 1, week_offset, reference, tz)


# ── Months ──────────────────────────────────────────────────


def start_of_month(offset: int, reference: datetime, tz: tzinfo | None = None) -> datetime:
    day, zone = _local_date(reference, tz)
    return _midnight(_add_months(day, offset), zone)


def end_of_month(offset: int, reference: datetime, tz: tzinfo | None = None) -> datetime:
    return start_of_month(offset + 1, reference, tz)


# ── Dispatch by unit ────────────────────────────────────────

_STARTS = {
    GoalPeriodUnit.DAY: start_of_day,
    GoalPeriodUnit.WEEK: start_of_week,
    GoalPeriodUnit.MONTH: start_of_month,
}


def start_of_period(unit: GoalPeriodUnit, offset: int, reference: datetime,
                    tz: tzinfo | None = None) -> datetime:
    return _STARTS[unit](offset, reference, tz)


def end_of_period(unit: GoalPeriodUnit, offset: int, reference: datetime,
                  tz: tzinfo | None = None) -> datetime:
    return _STARTS[unit](offset + 1, reference, tz)


def goal_window(unit: GoalPeriodUnit, period_in_units: int, reference: datetime,
                tz: tzinfo | None = None) -> tuple[datetime, int]:
    """Start and length in seconds of a goal instance created at `reference`.

    The window starts at the beginning of the day/week/month containing the
    reference and spans `period_in_units` units. The length is measured once,
    in real seconds, so a DST change inside the window is part of the stored
    value and never recomputed.
    """
    if period_in_units < 1:
        raise ValueError(f"period_in_units must be positive, got {period_in_units}")
    start = start_of_period(unit, 0, reference, tz)
    end = _STARTS[unit](period_in_units, reference, tz)
    return start, seconds_between(start, end)
