"""Shared data models used across safefix modules."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from safefix.core.errors import ErrorKind


class EditOperation(enum.Enum):
    REMOVE = "remove"
    REPLACE = "replace"
    INSERT = "insert"


class Decision(enum.Enum):
    """Operator decision on a proposed change set."""

    ACCEPT_ALL = "accept"
    REVIEW_PER_FILE = "review"
    SKIP_ALL = "skip"
    ABORT = "abort"


class FileChoice(enum.Enum):
    ACCEPT = "yes"
    REJECT = "no"
    CURATE = "select"


class Phase(enum.Enum):
    PREFLIGHT = "preflight"
    COLLECT = "collect"
    PREVIEW = "preview"
    BACKUP = "backup"
    APPLY = "apply"
    VALIDATE = "validate"
    COMMIT = "commit"
    ROLLBACK = "rollback"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class FixCandidate:
    """A located, confidence-scored suggestion that some source text can go."""

    file: Path
    line: int
    column: int
    category: str
    code: str
    confidence: float
    symbol: str = ""
    end_line: int | None = None
    end_column: int | None = None


@dataclass(frozen=True)
class Edit:
    """A single line-level edit.

    ``group`` is the line of the statement the edit came from, so the lines
    of one multi-line statement are counted and curated together.
    """

    file: Path
    line: int
    operation: EditOperation
    old_text: str = ""
    new_text: str | None = None
    description: str = ""
    category: str = ""
    group: int = 0


@dataclass
class ChangeSummary:
    total_files: int = 0
    total_changes: int = 0
    fixes_by_category: dict[str, int] = field(default_factory=dict)
    changes_by_file: dict[Path, int] = field(default_factory=dict)

    @property
    def total_fixes(self) -> int:
        return sum(self.fixes_by_category.values())


@dataclass(frozen=True)
class ChangeSet:
    """The full proposed edit set for one transaction, across all files."""

    edits: tuple[Edit, ...] = ()

    def __len__(self) -> int:
        return len(self.edits)

    def __bool__(self) -> bool:
        return bool(self.edits)

    @property
    def files(self) -> list[Path]:
        return list(self.by_file())

    def by_file(self) -> dict[Path, list[Edit]]:
        """Group edits per file, keeping first-seen file order."""
        groups: dict[Path, list[Edit]] = {}
        for edit in self.edits:
            groups.setdefault(edit.file, []).append(edit)
        return groups

    def fix_groups(self, file: Path) -> list[list[Edit]]:
        """Edits of one file bundled per originating statement."""
        bundles: dict[tuple[str, int], list[Edit]] = {}
        for edit in self.edits:
            if edit.file == file:
                bundles.setdefault((edit.category, edit.group), []).append(edit)
        return list(bundles.values())

    def only_files(self, files: set[Path]) -> ChangeSet:
        return ChangeSet(tuple(e for e in self.edits if e.file in files))

    def summary(self) -> ChangeSummary:
        fixes: set[tuple[Path, str, int]] = set()
        by_category: dict[str, int] = {}
        by_file: dict[Path, int] = {}
        for edit in self.edits:
            by_file[edit.file] = by_file.get(edit.file, 0) + 1
            key = (edit.file, edit.category, edit.group)
            if key not in fixes:
                fixes.add(key)
                by_category[edit.category] = by_category.get(edit.category, 0) + 1
        return ChangeSummary(
            total_files=len(by_file),
            total_changes=len(self.edits),
            fixes_by_category=by_category,
            changes_by_file=by_file,
        )


@dataclass
class SnapshotHandle:
    """Where the original contents of one transaction's files were copied."""

    id: str
    timestamp: datetime
    directory: Path
    files: dict[Path, Path] = field(default_factory=dict)
    excluded: dict[Path, str] = field(default_factory=dict)
    consumed: str = ""  # "", "cleaned" or "restored"


@dataclass
class CheckOutcome:
    name: str
    command: str | None
    passed: bool
    skipped: bool = False
    output: str = ""
    error: str = ""
    duration: float = 0.0


@dataclass
class ValidationOutcome:
    checks: list[CheckOutcome] = field(default_factory=list)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return all(c.passed for c in self.checks if not c.skipped)

    @property
    def passed(self) -> list[CheckOutcome]:
        return [c for c in self.checks if not c.skipped and c.passed]

    @property
    def failed(self) -> list[CheckOutcome]:
        return [c for c in self.checks if not c.skipped and not c.passed]

    @property
    def skipped(self) -> list[CheckOutcome]:
        return [c for c in self.checks if c.skipped]


@dataclass
class VcsState:
    is_repository: bool
    is_clean: bool = True
    branch: str = ""
    head_commit: str = ""
    changed_paths: list[str] = field(default_factory=list)
    recovery_branch: str | None = None


@dataclass
class RunProblem:
    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class FixRunResult:
    """Result record handed back to the invoking layer."""

    success: bool = False
    files_modified: int = 0
    changes_applied: int = 0
    backup_id: str | None = None
    problems: list[RunProblem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    validation: ValidationOutcome | None = None
    rolled_back: bool = False
    restore_failures: list[str] = field(default_factory=list)
    recovery_branch: str | None = None
    committed: bool = False
    phase: Phase = Phase.PREFLIGHT

    @property
    def errors(self) -> list[str]:
        return [p.message for p in self.problems]

    def add_problem(self, kind: ErrorKind, message: str) -> None:
        self.problems.append(RunProblem(kind=kind, message=message))

    def has_problem(self, kind: ErrorKind) -> bool:
        return any(p.kind == kind for p in self.problems)
