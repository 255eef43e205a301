"""Time and id providers injected into the engine."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Protocol


class TimeProvider(Protocol):
    def now(self) -> datetime: ...


class IdProvider(Protocol):
    def generate_id(self) -> str: ...


class SystemTimeProvider:
    """Wall clock in UTC. Local calendar math converts as needed."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class UUIDProvider:
    def generate_id(self) -> str:
        return str(uuid.uuid4())
