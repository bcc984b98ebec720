"""Typed results for store and workflow operations.

Operations that touch the database return an Outcome instead of raising, so
the router can choose an action-specific message and status code.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class OutcomeKind(str, enum.Enum):
    OK = "ok"
    VALIDATION_ERROR = "validation_error"
    CAPACITY_ERROR = "capacity_error"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    ERROR = "error"


HTTP_STATUS = {
    OutcomeKind.OK: 200,
    OutcomeKind.VALIDATION_ERROR: 422,
    OutcomeKind.CAPACITY_ERROR: 409,
    OutcomeKind.NOT_FOUND: 404,
    OutcomeKind.FORBIDDEN: 403,
    OutcomeKind.CONFLICT: 409,
    OutcomeKind.TIMEOUT: 504,
    OutcomeKind.ERROR: 500,
}


@dataclass(slots=True)
class Outcome:
    kind: OutcomeKind
    message: str = ""
    value: Any = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.OK

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    @classmethod
    def success(cls, value: Any = None, message: str = "") -> "Outcome":
        return cls(OutcomeKind.OK, message=message, value=value)

    @classmethod
    def invalid(cls, errors: list[str]) -> "Outcome":
        return cls(OutcomeKind.VALIDATION_ERROR, message="; ".join(errors), errors=list(errors))

    @classmethod
    def fail(cls, kind: OutcomeKind, message: str) -> "Outcome":
        return cls(kind, message=message)

    def as_dict(self) -> dict:
        return {"status": self.kind.value, "message": self.message, "errors": self.errors}
