"""Active session engine — the section-switching state machine."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta, tzinfo

from practicetrack.activity import ActivityLog
from practicetrack.config import resolve_timezone
from practicetrack.models import (
    ActiveSessionState,
    LibraryItem,
    PracticeSection,
    Section,
    SessionMeta,
    TrackerConfig,
)
from practicetrack.periods import local_timezone
from practicetrack.providers import IdProvider, SystemTimeProvider, TimeProvider, UUIDProvider
from practicetrack.repository import SessionRepository
from practicetrack.result import PERSISTENCE_FAILURE, Failure, Ok, Result, invalid
from practicetrack.state import ActiveSessionStore


ZERO = timedelta(0)
ONE_SECOND = timedelta(seconds=1)


def _item_label(item: LibraryItem) -> str:
    return item.name or item.id


def _fmt(duration: timedelta) -> str:
    seconds = int(duration.total_seconds())
    return f"{seconds // 3600}:{seconds % 3600 // 60:02}:{seconds % 60:02}"


# ── Pure state transitions ──────────────────────────────────


def running_duration(state: ActiveSessionState, at: datetime) -> timedelta:
    """Active time of the running section measured at `at`, never negative.

    Pause is not special-cased: while paused the caller passes the pause start
    to get a frozen value.
    """
    return max(ZERO, at - state.start_timestamp_section_pause_compensated)


def resumed(state: ActiveSessionState, now: datetime) -> ActiveSessionState:
    """Shift the compensated section start forward by the pause that just ended."""
    pause = max(ZERO, now - state.current_pause_start_timestamp)
    return replace(
        state,
        start_timestamp_section_pause_compensated=state.start_timestamp_section_pause_compensated + pause,
        current_pause_start_timestamp=None,
        is_paused=False,
    )


def close_running_section(state: ActiveSessionState, now: datetime,
                          section_id: str) -> tuple[PracticeSection, datetime]:
    """Finalize the running section at `now`.

    Returns the section and the changeover instant: the compensated start plus
    the whole seconds of active time. The duration is measured again at the
    changeover instant, so the next section starts exactly where this one
    ends.
    """
    compensated = state.start_timestamp_section_pause_compensated
    whole_seconds = running_duration(state, now) // ONE_SECOND
    changeover = compensated + timedelta(seconds=whole_seconds)
    section = PracticeSection(
        id=section_id,
        library_item=state.current_section_item,
        start_timestamp=state.start_timestamp_section,
        pause_duration=compensated - state.start_timestamp_section,
        duration=running_duration(state, changeover),
    )
    return section, changeover


# ── Engine ──────────────────────────────────────────────────


class ActiveSessionEngine:
    """Operations on the single in-progress practice session.

    Each operation is one read-modify-write under the store's lock and returns
    Ok or Failure. Checks happen before any write, so a Failure never leaves a
    half-updated state behind.
    """

    def __init__(self, store: ActiveSessionStore, session_repository: SessionRepository,
                 time_provider: TimeProvider | None = None,
                 id_provider: IdProvider | None = None,
                 log: ActivityLog | None = None,
                 min_section_duration: timedelta = ONE_SECOND,
                 cancel_event: threading.Event | None = None,
                 tz: tzinfo | None = None):
        self.store = store
        self.session_repository = session_repository
        self.time = time_provider or SystemTimeProvider()
        self.ids = id_provider or UUIDProvider()
        self.log = log or ActivityLog()
        self.min_section_duration = min_section_duration
        self.cancel_event = cancel_event or threading.Event()
        self.tz = tz or local_timezone()      # calendar zone for goals and stats

    @classmethod
    def from_config(cls, config: TrackerConfig, store: ActiveSessionStore,
                    session_repository: SessionRepository, **kwargs) -> ActiveSessionEngine:
        kwargs.setdefault("log", ActivityLog(config.log_path, echo=config.log_echo))
        kwargs.setdefault("tz", resolve_timezone(config.timezone))
        return cls(
            store,
            session_repository,
            min_section_duration=timedelta(seconds=config.min_section_seconds),
            **kwargs,
        )

    @property
    def state(self) -> ActiveSessionState | None:
        return self.store.get()

    def _reject(self, operation: str, message: str) -> Failure:
        self.log.log(f"✗ {operation} rejected: {message}")
        return invalid(message)

    # ── Section switching ───────────────────────────────────

    def select_item(self, item: LibraryItem) -> Result:
        """Start the session with `item`, or switch the running section to it."""
        with self.store.locked():
            state = self.store.get()
            now = self.time.now()

            if state is None:
                new_state = ActiveSessionState(
                    current_section_item=item,
                    start_timestamp=now,
                    start_timestamp_section=now,
                    start_timestamp_section_pause_compensated=now,
                )
                self.store.set(new_state)
                self.log.log(f"▸ session started with '{_item_label(item)}'")
                return Ok(new_state)

            if state.current_section_item == item:
                return self._reject(
                    "select", f"'{_item_label(item)}' is already running"
                )
            if running_duration(state, now) < self.min_section_duration:
                return self._reject(
                    "select",
                    f"sections must run for at least {self.min_section_duration.total_seconds():g}s",
                )

            if state.is_paused:
                state = resumed(state, now)
                now = self.time.now()

            section, changeover = close_running_section(state, now, self.ids.generate_id())
            new_state = replace(
                state,
                completed_sections=state.completed_sections + (section,),
                current_section_item=item,
                start_timestamp_section=changeover,
                start_timestamp_section_pause_compensated=changeover,
            )
            self.store.set(new_state)
            self.log.log(
                f"▸ switched '{_item_label(section.library_item)}' → '{_item_label(item)}' "
                f"after {_fmt(section.duration)}"
            )
            return Ok(new_state)

    # ── Pause / resume ──────────────────────────────────────

    def pause(self) -> Result:
        with self.store.locked():
            state = self.store.get()
            if state is None:
                return self._reject("pause", "no active session")
            if state.is_paused:
                return self._reject("pause", "session is already paused")
            new_state = replace(
                state, is_paused=True, current_pause_start_timestamp=self.time.now()
            )
            self.store.set(new_state)
            self.log.log("⏸ paused")
            return Ok(new_state)

    def resume(self) -> Result:
        with self.store.locked():
            state = self.store.get()
            if state is None:
                return self._reject("resume", "no active session")
            if not state.is_paused:
                return self._reject("resume", "session is not paused")
            new_state = resumed(state, self.time.now())
            self.store.set(new_state)
            pause = (new_state.start_timestamp_section_pause_compensated
                     - state.start_timestamp_section_pause_compensated)
            self.log.log(f"▶ resumed after {_fmt(pause)}")
            return Ok(new_state)

    # ── Durations ───────────────────────────────────────────

    def get_running_item_duration(self, at: datetime | None = None) -> Result:
        state = self.store.get()
        if state is None:
            return invalid("no active session")
        return Ok(running_duration(state, at or self.time.now()))

    def get_ongoing_pause_duration(self, at: datetime | None = None) -> Result:
        state = self.store.get()
        if state is None:
            return invalid("no active session")
        if not state.is_paused:
            return Ok(ZERO)
        return Ok(max(ZERO, (at or self.time.now()) - state.current_pause_start_timestamp))

    def get_total_practice_duration(self, at: datetime | None = None) -> Result:
        """Completed sections plus the running one, frozen while paused."""
        state = self.store.get()
        if state is None:
            return invalid("no active session")
        at = at or self.time.now()
        if state.is_paused:
            at = min(at, state.current_pause_start_timestamp)
        completed = sum((s.duration for s in state.completed_sections), ZERO)
        return Ok(completed + running_duration(state, at))

    # ── Section / session lifecycle ─────────────────────────

    def delete_section(self, section_id: str) -> Result:
        """Remove a completed section. Unknown ids are a no-op: Ok(0)."""
        with self.store.locked():
            state = self.store.get()
            if state is None:
                return Ok(0)
            remaining = tuple(s for s in state.completed_sections if s.id != section_id)
            if len(remaining) == len(state.completed_sections):
                return Ok(0)
            self.store.set(replace(state, completed_sections=remaining))
            self.log.log(f"  deleted section {section_id}")
            return Ok(1)

    def discard_session(self) -> Result:
        with self.store.locked():
            if self.store.get() is None:
                return self._reject("discard", "no active session")
            self.store.clear()
            self.log.log("  session discarded")
            return Ok()

    def finish_session(self, rating: int, comment: str = "") -> Result:
        """Close the running section and persist the session.

        Returns Ok(session_id). The store is cleared only after the repository
        accepted the session; if the write raises, the state stays as it was
        and a persistence_failure is returned so the caller can retry.
        """
        with self.store.locked():
            state = self.store.get()
            if state is None:
                return self._reject("finish", "no active session")

            now = state.current_pause_start_timestamp if state.is_paused else self.time.now()
            last, _ = close_running_section(state, now, self.ids.generate_id())
            sections = state.completed_sections
            if last.duration > ZERO:
                sections += (last,)
            if not sections:
                return self._reject("finish", "session has no practice time")

            # a dropped last section still contributes the pauses it held
            break_duration = sum((s.pause_duration for s in state.completed_sections),
                                 last.pause_duration)
            try:
                meta = SessionMeta(rating=rating, comment=comment, break_duration=break_duration)
            except ValueError as e:
                return self._reject("finish", str(e))

            if self.cancel_event.is_set():
                return self._reject("finish", "cancelled before persisting")

            records = [
                Section(
                    library_item_id=s.library_item.id,
                    start_timestamp=s.start_timestamp,
                    duration=s.duration,
                )
                for s in sections
            ]
            try:
                session_id = self.session_repository.add(meta, records)
            except Exception as e:
                self.log.log(f"✗ persistence failed: {e}")
                return Failure(
                    kind=PERSISTENCE_FAILURE,
                    message=f"could not save session: {e}",
                    cause=e,
                )

            self.store.clear()
            total = sum((s.duration for s in sections), ZERO)
            self.log.log(
                f"✓ session finished ({len(sections)} sections, {_fmt(total)} practiced, "
                f"{_fmt(break_duration)} break)"
            )
            return Ok(session_id)
