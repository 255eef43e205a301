"""Repository contracts plus in-memory implementations.

The engine only talks to the protocols below. The in-memory classes are
complete, lock-protected implementations used by tests and by embedders that
keep their own storage elsewhere.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from practicetrack.models import (
    Goal,
    GoalDescription,
    GoalInstance,
    Section,
    Session,
    SessionMeta,
)
from practicetrack.providers import IdProvider, UUIDProvider


class SessionRepository(Protocol):
    def add(self, meta: SessionMeta, sections: Sequence[Section]) -> str: ...

    def sessions_in_window(self, start: datetime, end: datetime) -> list[Session]: ...


class GoalRepository(Protocol):
    def goals(self) -> list[Goal]: ...

    def current_goals(self, now: datetime) -> list[Goal]: ...

    def outdated_goals(self, now: datetime) -> list[Goal]: ...

    def add_instance(self, instance: GoalInstance) -> None: ...

    def mark_renewed(self, instance_id: str) -> None: ...

    def archive(self, description_id: str) -> None: ...


class InMemorySessionRepository:
    def __init__(self, id_provider: IdProvider | None = None):
        self._ids = id_provider or UUIDProvider()
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def add(self, meta: SessionMeta, sections: Sequence[Section]) -> str:
        if not sections:
            raise ValueError("a session needs at least one section")
        with self._lock:
            session = Session(
                id=self._ids.generate_id(),
                rating=meta.rating,
                comment=meta.comment,
                break_duration=meta.break_duration,
                sections=tuple(sections),
            )
            self._sessions[session.id] = session
            return session.id

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def all_sessions(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    def sessions_in_window(self, start: datetime, end: datetime) -> list[Session]:
        """Sessions whose earliest section starts in [start, end)."""
        if not start < end:
            raise ValueError(f"empty window: {start} .. {end}")
        with self._lock:
            sessions = list(self._sessions.values())
        matching = [s for s in sessions if start <= s.start_timestamp < end]
        return sorted(matching, key=lambda s: s.start_timestamp)

    def delete(self, session_ids: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for session_id in session_ids:
                if self._sessions.pop(session_id, None) is not None:
                    removed += 1
        return removed


class InMemoryGoalRepository:
    def __init__(self):
        self._descriptions: dict[str, GoalDescription] = {}
        self._instances: dict[str, GoalInstance] = {}
        self._lock = threading.Lock()

    def add_goal(self, description: GoalDescription, instance: GoalInstance) -> Goal:
        if instance.description_id != description.id:
            raise ValueError(
                f"instance '{instance.id}' belongs to '{instance.description_id}', "
                f"not '{description.id}'"
            )
        with self._lock:
            self._descriptions[description.id] = description
            self._instances[instance.id] = instance
        return Goal(instance=instance, description=description)

    def add_instance(self, instance: GoalInstance) -> None:
        with self._lock:
            if instance.description_id not in self._descriptions:
                raise KeyError(f"Unknown goal description '{instance.description_id}'")
            self._instances[instance.id] = instance

    def update_description(self, description_id: str, **changes) -> GoalDescription:
        with self._lock:
            updated = replace(self._descriptions[description_id], **changes)
            self._descriptions[description_id] = updated
            return updated

    def _pairs(self) -> list[Goal]:
        return [
            Goal(instance=instance, description=self._descriptions[instance.description_id])
            for instance in self._instances.values()
        ]

    def goals(self) -> list[Goal]:
        with self._lock:
            return self._pairs()

    def current_goals(self, now: datetime) -> list[Goal]:
        """Instances whose window contains now, excluding archived goals."""
        with self._lock:
            return [
                g for g in self._pairs()
                if g.instance.contains(now) and not g.description.archived
            ]

    def outdated_goals(self, now: datetime) -> list[Goal]:
        """Ended, not yet renewed instances of non-archived goals."""
        with self._lock:
            return [
                g for g in self._pairs()
                if g.instance.is_outdated(now)
                and not g.instance.renewed
                and not g.description.archived
            ]

    def mark_renewed(self, instance_id: str) -> None:
        with self._lock:
            self._instances[instance_id] = replace(self._instances[instance_id], renewed=True)

    def archive(self, description_id: str) -> None:
        with self._lock:
            self._descriptions[description_id] = replace(
                self._descriptions[description_id], archived=True
            )
