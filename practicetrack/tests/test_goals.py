"""Tests for goal progress, current goals and goal renewal."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from practicetrack.config import parse_config
from practicetrack.engine import ActiveSessionEngine
from practicetrack.goals import (
    calculate_goal_progress,
    create_goal_instance,
    get_current_goals,
    renew_outdated_goals,
)
from practicetrack.models import (
    Goal,
    GoalDescription,
    GoalInstance,
    GoalPeriodUnit,
    GoalType,
    Section,
    SessionMeta,
)
from practicetrack.repository import InMemoryGoalRepository, InMemorySessionRepository
from practicetrack.state import ActiveSessionStore

from fakes import START_TIME, FakeIdProvider, FakeTimeProvider


DAY = 24 * 3600


def _goal(type=GoalType.NON_SPECIFIC, item_ids=(), start=START_TIME, period=DAY,
          target=timedelta(hours=1), description_id="d1", instance_id="i1", **kwargs):
    description = GoalDescription(
        id=description_id, type=type, library_item_ids=frozenset(item_ids), **kwargs
    )
    instance = GoalInstance(
        id=instance_id,
        description_id=description_id,
        start_timestamp=start,
        period_in_seconds=period,
        target=target,
    )
    return Goal(instance=instance, description=description)


def _add_session(repo, *sections):
    return repo.add(
        SessionMeta(rating=3, comment="Test comment", break_duration=timedelta(minutes=10)),
        [
            Section(library_item_id=item, start_timestamp=start, duration=duration)
            for item, start, duration in sections
        ],
    )


# ── calculate_goal_progress ─────────────────────────────


def test_progress_for_non_specific_goal():
    sessions = InMemorySessionRepository(FakeIdProvider())
    # started during the goal, so the late section still counts
    _add_session(
        sessions,
        ("item1", START_TIME + timedelta(days=2), timedelta(minutes=1)),
        ("item1", START_TIME, timedelta(minutes=2)),
    )
    # started after the goal instance ended
    _add_session(sessions, ("item1", START_TIME + timedelta(days=1), timedelta(minutes=10)))

    progress = calculate_goal_progress([_goal()], sessions)

    assert progress == [timedelta(minutes=3)]


def test_progress_for_item_specific_goal():
    sessions = InMemorySessionRepository(FakeIdProvider())
    _add_session(
        sessions,
        ("item1", START_TIME, timedelta(minutes=1)),
        ("item2", START_TIME, timedelta(minutes=2)),
    )

    progress = calculate_goal_progress(
        [_goal(type=GoalType.ITEM_SPECIFIC, item_ids={"item1"})], sessions
    )

    assert progress == [timedelta(minutes=1)]


def test_item_specific_goal_without_items_has_no_progress():
    sessions = InMemorySessionRepository(FakeIdProvider())
    _add_session(sessions, ("item1", START_TIME, timedelta(minutes=5)))

    progress = calculate_goal_progress([_goal(type=GoalType.ITEM_SPECIFIC)], sessions)

    assert progress == [timedelta(0)]


def test_window_is_half_open():
    sessions = InMemorySessionRepository(FakeIdProvider())
    _add_session(sessions, ("item1", START_TIME, timedelta(minutes=4)))
    _add_session(sessions, ("item1", START_TIME + timedelta(seconds=DAY), timedelta(minutes=8)))
    _add_session(sessions, ("item1", START_TIME - timedelta(seconds=1), timedelta(minutes=16)))

    assert calculate_goal_progress([_goal()], sessions) == [timedelta(minutes=4)]


def test_progress_keeps_input_order():
    sessions = InMemorySessionRepository(FakeIdProvider())
    _add_session(sessions, ("item1", START_TIME, timedelta(minutes=1)))
    _add_session(sessions, ("item2", START_TIME + timedelta(days=1), timedelta(minutes=2)))

    goals = [
        _goal(start=START_TIME + timedelta(days=1), description_id="d2", instance_id="i2"),
        _goal(type=GoalType.ITEM_SPECIFIC, item_ids={"item2"}),
        _goal(),
    ]

    assert calculate_goal_progress(goals, sessions) == [
        timedelta(minutes=2),
        timedelta(0),
        timedelta(minutes=1),
    ]


def test_progress_does_not_touch_goals():
    sessions = InMemorySessionRepository(FakeIdProvider())
    goal = _goal()
    calculate_goal_progress([goal], sessions)
    assert not goal.instance.renewed
    assert goal.instance.start_timestamp == START_TIME


# ── get_current_goals ───────────────────────────────────


def _goal_repo_with_paused_goal():
    goals = InMemoryGoalRepository()
    active = _goal()
    paused = _goal(description_id="d2", instance_id="i2", paused=True)
    goals.add_goal(active.description, active.instance)
    goals.add_goal(paused.description, paused.instance)
    sessions = InMemorySessionRepository(FakeIdProvider())
    _add_session(sessions, ("item1", START_TIME, timedelta(hours=1)))
    return goals, sessions


def test_current_goals_including_paused():
    goals, sessions = _goal_repo_with_paused_goal()

    current = get_current_goals(goals, sessions, START_TIME + timedelta(hours=2),
                                exclude_paused=False)

    assert [g.goal.description.id for g in current] == ["d1", "d2"]
    assert [g.progress for g in current] == [timedelta(hours=1), timedelta(hours=1)]


def test_current_goals_excluding_paused():
    goals, sessions = _goal_repo_with_paused_goal()

    current = get_current_goals(goals, sessions, START_TIME + timedelta(hours=2))

    assert [g.goal.description.id for g in current] == ["d1"]


def test_current_goals_skip_ended_and_archived():
    goals, sessions = _goal_repo_with_paused_goal()
    goals.archive("d1")

    assert get_current_goals(goals, sessions, START_TIME, exclude_paused=False)[0].goal.description.id == "d2"
    assert get_current_goals(goals, sessions, START_TIME + timedelta(days=1),
                             exclude_paused=False) == []


# ── create / renew ──────────────────────────────────────


def test_create_goal_instance_for_week():
    description = GoalDescription(
        id="d1", type=GoalType.NON_SPECIFIC, period_in_period_units=2,
        period_unit=GoalPeriodUnit.WEEK,
    )
    # Thursday
    reference = datetime(2024, 5, 16, 18, tzinfo=timezone.utc)

    instance = create_goal_instance(description, reference, timedelta(hours=5), FakeIdProvider(),
                                    tz=timezone.utc)

    assert instance.id == "1"
    assert instance.description_id == "d1"
    assert instance.start_timestamp == datetime(2024, 5, 13, tzinfo=timezone.utc)
    assert instance.period_in_seconds == 14 * DAY
    assert instance.target == timedelta(hours=5)
    assert not instance.renewed


def _repo_with(description, start):
    goals = InMemoryGoalRepository()
    instance = create_goal_instance(description, start, timedelta(minutes=30), FakeIdProvider(),
                                    tz=timezone.utc)
    goals.add_goal(description, instance)
    return goals, instance


def test_renew_repeating_goal_chains_instances():
    description = GoalDescription(id="d1", type=GoalType.NON_SPECIFIC)
    start = datetime(2024, 5, 1, 9, tzinfo=timezone.utc)
    goals, first = _repo_with(description, start)
    now = datetime(2024, 5, 4, 12, tzinfo=timezone.utc)
    ids = FakeIdProvider()
    ids.count = 100

    created = renew_outdated_goals(goals, now, ids, tz=timezone.utc)

    assert [i.start_timestamp.day for i in created] == [2, 3, 4]
    assert [i.renewed for i in created] == [True, True, False]
    assert all(i.target == timedelta(minutes=30) for i in created)
    current = goals.current_goals(now)
    assert [g.instance.id for g in current] == [created[-1].id]
    assert goals.outdated_goals(now) == []
    assert renew_outdated_goals(goals, now, ids, tz=timezone.utc) == []


def test_renew_archives_non_repeating_goal():
    description = GoalDescription(id="d1", type=GoalType.NON_SPECIFIC, repeat=False)
    goals, _ = _repo_with(description, datetime(2024, 5, 1, tzinfo=timezone.utc))

    created = renew_outdated_goals(goals, datetime(2024, 5, 3, tzinfo=timezone.utc),
                                   FakeIdProvider(), tz=timezone.utc)

    assert created == []
    assert goals.goals()[0].description.archived
    assert goals.goals()[0].instance.renewed


def test_renew_leaves_running_goals_alone():
    description = GoalDescription(id="d1", type=GoalType.NON_SPECIFIC)
    goals, _ = _repo_with(description, datetime(2024, 5, 1, tzinfo=timezone.utc))

    assert renew_outdated_goals(goals, datetime(2024, 5, 1, 23, tzinfo=timezone.utc),
                                FakeIdProvider(), tz=timezone.utc) == []


def _engine_in(zone_name, now):
    config = parse_config({"version": "1.0", "calendar": {"timezone": zone_name}})
    return ActiveSessionEngine.from_config(
        config, ActiveSessionStore(), InMemorySessionRepository(FakeIdProvider()),
        time_provider=FakeTimeProvider(now),
    )


def test_instance_starts_at_configured_local_midnight():
    # 20:00 UTC on May 1st is already May 2nd in Auckland (UTC+12)
    engine = _engine_in("Pacific/Auckland", datetime(2024, 5, 1, 20, tzinfo=timezone.utc))
    description = GoalDescription(id="d1", type=GoalType.NON_SPECIFIC)

    instance = create_goal_instance(description, engine.time.now(), timedelta(minutes=30),
                                    FakeIdProvider(), tz=engine.tz)

    assert engine.tz == ZoneInfo("Pacific/Auckland")
    assert instance.start_timestamp == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    assert instance.period_in_seconds == DAY


def test_renewal_follows_configured_timezone():
    engine = _engine_in("Pacific/Auckland", datetime(2024, 5, 1, 20, tzinfo=timezone.utc))
    description = GoalDescription(id="d1", type=GoalType.NON_SPECIFIC)
    goals = InMemoryGoalRepository()
    goals.add_goal(description, create_goal_instance(
        description, engine.time.now(), timedelta(minutes=30), FakeIdProvider(), tz=engine.tz
    ))
    now = datetime(2024, 5, 3, 13, tzinfo=timezone.utc)
    ids = FakeIdProvider()
    ids.count = 100

    created = renew_outdated_goals(goals, now, ids, tz=engine.tz)

    assert [i.start_timestamp for i in created] == [
        datetime(2024, 5, 2, 12, tzinfo=timezone.utc),
        datetime(2024, 5, 3, 12, tzinfo=timezone.utc),
    ]


def test_goal_instance_rejects_bad_values():
    with pytest.raises(ValueError):
        _goal(period=0)
    with pytest.raises(ValueError):
        _goal(target=timedelta(minutes=-1))
    with pytest.raises(ValueError):
        _goal(start=datetime(2024, 5, 1))
    with pytest.raises(ValueError):
        GoalDescription(id="d", type=GoalType.NON_SPECIFIC, library_item_ids=frozenset({"x"}))
