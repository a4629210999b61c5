"""Error kinds raised by the registry core."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    UNAUTHORIZED = "Unauthorized"
    INVALID_LIFECYCLE_STATE = "InvalidLifecycleState"
    PRECONDITION_FAILED = "PreconditionFailed"
    # Covers both "no such record" and "record already in target state".
    RECORD_STATE_CONFLICT = "RecordNotFound"
    ORACLE_UNAVAILABLE = "OracleUnavailable"


class RegistryError(Exception):
    """A rejected registry operation. Nothing was mutated."""

    def __init__(self, kind: ErrorKind, message: str, **detail: Any):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind.value, "message": self.message, "detail": self.detail}

    def __repr__(self) -> str:
        return f"RegistryError({self.kind.name}, {self.message!r})"
