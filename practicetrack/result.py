"""Typed operation results for the active session engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


INVALID_OPERATION = "invalid_operation"
PERSISTENCE_FAILURE = "persistence_failure"


class SessionError(Exception):
    """Raised by Result.unwrap() when the operation failed."""

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class Ok:
    value: Any = None

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class Failure:
    kind: str                          # invalid_operation or persistence_failure
    message: str
    cause: BaseException | None = None  # set for persistence failures

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise SessionError(self.kind, self.message) from self.cause


Result = Ok | Failure


def invalid(message: str) -> Failure:
    return Failure(kind=INVALID_OPERATION, message=message)
