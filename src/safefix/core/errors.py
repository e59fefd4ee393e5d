"""Error kinds and exceptions raised by the fix transaction."""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    PRECONDITION = "precondition"
    DETECTION = "detection"
    BACKUP = "backup"
    VALIDATION = "validation"
    RESTORE = "restore"
    VCS = "vcs"
    INTERNAL = "internal"


class SafeFixError(Exception):
    """Base error. ``kind`` tells callers whether the user can act on it."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, hint: str = ""):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\n{self.hint}"
        return self.message


class PreconditionError(SafeFixError):
    """The run cannot start: dirty tree, missing repository, red baseline."""

    kind = ErrorKind.PRECONDITION


class VcsError(SafeFixError):
    kind = ErrorKind.VCS


class SnapshotError(SafeFixError):
    kind = ErrorKind.BACKUP


class StaleEditError(SafeFixError):
    """An edit no longer matches the file it targets."""

    kind = ErrorKind.INTERNAL
