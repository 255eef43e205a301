"""Data classes for library items, sessions, goals and runtime config."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum


def _require_aware(name: str, value: datetime | None) -> None:
    if value is not None and value.tzinfo is None:
        raise ValueError(f"{name} must be timezone-aware")


def _require_non_negative(name: str, value: timedelta) -> None:
    if value < timedelta(0):
        raise ValueError(f"{name} must not be negative: {value}")


@dataclass(frozen=True)
class LibraryItem:
    id: str
    name: str = ""


# ── Active session ───────────────────────────────────────


@dataclass(frozen=True)
class PracticeSection:
    """A finished section of the session currently in progress."""
    id: str
    library_item: LibraryItem
    start_timestamp: datetime     # original start, not pause compensated
    pause_duration: timedelta
    duration: timedelta           # active time only

    def __post_init__(self):
        _require_aware("start_timestamp", self.start_timestamp)
        _require_non_negative("pause_duration", self.pause_duration)
        _require_non_negative("duration", self.duration)


@dataclass(frozen=True)
class ActiveSessionState:
    current_section_item: LibraryItem
    start_timestamp: datetime
    start_timestamp_section: datetime
    start_timestamp_section_pause_compensated: datetime
    completed_sections: tuple[PracticeSection, ...] = ()
    current_pause_start_timestamp: datetime | None = None
    is_paused: bool = False

    def __post_init__(self):
        _require_aware("start_timestamp", self.start_timestamp)
        _require_aware("start_timestamp_section", self.start_timestamp_section)
        _require_aware("start_timestamp_section_pause_compensated",
                       self.start_timestamp_section_pause_compensated)
        _require_aware("current_pause_start_timestamp", self.current_pause_start_timestamp)
        if self.start_timestamp_section_pause_compensated < self.start_timestamp_section:
            raise ValueError("pause compensated section start precedes section start")
        if self.is_paused != (self.current_pause_start_timestamp is not None):
            raise ValueError("is_paused and current_pause_start_timestamp disagree")


# ── Persisted sessions ───────────────────────────────────


@dataclass(frozen=True)
class SessionMeta:
    rating: int
    comment: str = ""
    break_duration: timedelta = timedelta(0)

    def __post_init__(self):
        if not 1 <= self.rating <= 5:
            raise ValueError(f"rating must be between 1 and 5, got {self.rating}")
        _require_non_negative("break_duration", self.break_duration)


@dataclass(frozen=True)
class Section:
    library_item_id: str
    start_timestamp: datetime
    duration: timedelta

    def __post_init__(self):
        _require_aware("start_timestamp", self.start_timestamp)
        _require_non_negative("duration", self.duration)


@dataclass(frozen=True)
class Session:
    id: str
    rating: int
    comment: str
    break_duration: timedelta
    sections: tuple[Section, ...]

    @property
    def start_timestamp(self) -> datetime:
        """Earliest section start; the session is attributed to periods by it."""
        return min(s.start_timestamp for s in self.sections)

    @property
    def practice_duration(self) -> timedelta:
        return sum((s.duration for s in self.sections), timedelta(0))


# ── Goals ────────────────────────────────────────────────


class GoalType(Enum):
    NON_SPECIFIC = "non_specific"
    ITEM_SPECIFIC = "item_specific"


class GoalPeriodUnit(Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class GoalProgressType(Enum):
    TIME = "time"


@dataclass
class GoalDescription:
    id: str
    type: GoalType
    repeat: bool = True
    period_in_period_units: int = 1
    period_unit: GoalPeriodUnit = GoalPeriodUnit.DAY
    progress_type: GoalProgressType = GoalProgressType.TIME
    paused: bool = False
    archived: bool = False
    library_item_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self):
        if self.period_in_period_units < 1:
            raise ValueError(
                f"period_in_period_units must be positive, got {self.period_in_period_units}"
            )
        self.library_item_ids = frozenset(self.library_item_ids)
        if self.type is GoalType.NON_SPECIFIC and self.library_item_ids:
            raise ValueError("non-specific goals cannot be scoped to library items")


@dataclass
class GoalInstance:
    id: str
    description_id: str
    start_timestamp: datetime
    period_in_seconds: int
    target: timedelta
    renewed: bool = False

    def __post_init__(self):
        _require_aware("start_timestamp", self.start_timestamp)
        if self.period_in_seconds <= 0:
            raise ValueError(f"period_in_seconds must be positive, got {self.period_in_seconds}")
        _require_non_negative("target", self.target)

    @property
    def end_timestamp(self) -> datetime:
        """Exclusive end of the instance window, in UTC.

        The period is real elapsed seconds, so the addition happens in UTC
        rather than in the start timestamp's local wall time.
        """
        return self.start_timestamp.astimezone(timezone.utc) + timedelta(seconds=self.period_in_seconds)

    def contains(self, timestamp: datetime) -> bool:
        return self.start_timestamp <= timestamp < self.end_timestamp

    def is_outdated(self, now: datetime) -> bool:
        return now >= self.end_timestamp


@dataclass(frozen=True)
class Goal:
    instance: GoalInstance
    description: GoalDescription


@dataclass(frozen=True)
class GoalWithProgress:
    goal: Goal
    progress: timedelta


# ── Configuration ────────────────────────────────────────


@dataclass
class TrackerConfig:
    version: str = "1.0"
    min_section_seconds: int = 1
    timezone: str | None = None   # None = system local timezone
    log_path: str | None = None
    log_echo: bool = False
