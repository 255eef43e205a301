"""Goal progress, current goals and goal instance renewal."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, tzinfo

from practicetrack.activity import ActivityLog
from practicetrack.models import (
    Goal,
    GoalDescription,
    GoalInstance,
    GoalType,
    GoalWithProgress,
    Session,
)
from practicetrack.periods import goal_window, local_timezone
from practicetrack.providers import IdProvider
from practicetrack.repository import GoalRepository, SessionRepository


def _qualifying_duration(goal: Goal, sessions: Sequence[Session]) -> timedelta:
    description = goal.description
    total = timedelta(0)
    for session in sessions:
        for section in session.sections:
            if (description.type is GoalType.ITEM_SPECIFIC
                    and section.library_item_id not in description.library_item_ids):
                continue
            total += section.duration
    return total


def goal_progress(goal: Goal, session_repository: SessionRepository) -> timedelta:
    """Practice time counted toward one goal instance.

    Sessions are attributed whole, by their earliest section, to the window
    [start, start + period). Item-specific goals only count sections on their
    scoped items; with no scoped items they count nothing.
    """
    instance = goal.instance
    sessions = session_repository.sessions_in_window(
        instance.start_timestamp, instance.end_timestamp
    )
    return _qualifying_duration(goal, sessions)


def calculate_goal_progress(goals: Sequence[Goal],
                            session_repository: SessionRepository) -> list[timedelta]:
    """One progress duration per goal, in input order."""
    return [goal_progress(goal, session_repository) for goal in goals]


def get_current_goals(goal_repository: GoalRepository, session_repository: SessionRepository,
                      now: datetime, exclude_paused: bool = True) -> list[GoalWithProgress]:
    goals = [
        g for g in goal_repository.current_goals(now)
        if not (exclude_paused and g.description.paused)
    ]
    goals.sort(key=lambda g: (g.instance.start_timestamp, g.description.id))
    progress = calculate_goal_progress(goals, session_repository)
    return [GoalWithProgress(goal=g, progress=p) for g, p in zip(goals, progress)]


def create_goal_instance(description: GoalDescription, reference: datetime, target: timedelta,
                         id_provider: IdProvider, tz: tzinfo | None = None) -> GoalInstance:
    """New instance for the period containing `reference`.

    The period length is fixed here and stored with the instance. Boundaries
    are local midnights in `tz`, the system local zone when not given.
    """
    start, period_in_seconds = goal_window(
        description.period_unit, description.period_in_period_units, reference,
        tz or local_timezone(),
    )
    return GoalInstance(
        id=id_provider.generate_id(),
        description_id=description.id,
        start_timestamp=start,
        period_in_seconds=period_in_seconds,
        target=target,
    )


def renew_outdated_goals(goal_repository: GoalRepository, now: datetime, id_provider: IdProvider,
                         tz: tzinfo | None = None,
                         log: ActivityLog | None = None) -> list[GoalInstance]:
    """Replace ended instances with their successors.

    Repeating goals get one instance per elapsed period, each starting where
    the previous one ended, until the last one contains `now`. Non-repeating
    goals are archived. Returns the instances that were created.
    """
    log = log or ActivityLog()
    tz = tz or local_timezone()
    created: list[GoalInstance] = []
    for goal in goal_repository.outdated_goals(now):
        instance, description = goal.instance, goal.description
        goal_repository.mark_renewed(instance.id)

        if not description.repeat:
            goal_repository.archive(description.id)
            log.log(f"  goal: archived '{description.id}' (ended {instance.end_timestamp})")
            continue

        previous = instance
        while True:
            successor = create_goal_instance(
                description, previous.end_timestamp, previous.target, id_provider, tz
            )
            if successor.is_outdated(now):
                successor.renewed = True
            goal_repository.add_instance(successor)
            created.append(successor)
            log.log(f"  goal: renewed '{description.id}' from {successor.start_timestamp}")
            if not successor.renewed:
                break
            previous = successor
    return created
