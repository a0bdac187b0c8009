from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class ErrorKind(str, enum.Enum):
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not-found"
    WRONG_STATE = "wrong-state"
    TOO_FEW_PARTICIPANTS = "too-few-participants"
    INFEASIBLE = "infeasible"
    COMMIT_FAILED = "commit-failed"
    NOT_COMPLETED = "not-completed"
    SELF_EXCLUSION = "self-exclusion"
    DUPLICATE = "duplicate"
    INVALID_INPUT = "invalid-input"


class GameError(RuntimeError):
    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class Outcome:
    """Result of a public operation; ``error`` is set exactly when ``ok`` is False."""

    ok: bool
    error: Optional[ErrorKind] = None
    message: str = ""
