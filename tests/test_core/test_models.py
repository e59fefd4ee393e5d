"""Tests for the change-set and result records."""

from __future__ import annotations

from pathlib import Path

from safefix.core.errors import ErrorKind
from safefix.core.models import ChangeSet, Edit, EditOperation, FixRunResult


def _edit(file: str, line: int, category: str = "console-logs", group: int | None = None) -> Edit:
    return Edit(
        file=Path(file),
        line=line,
        operation=EditOperation.REMOVE,
        old_text=f"line {line}",
        category=category,
        group=line if group is None else group,
    )


class TestChangeSet:
    def test_empty_change_set_is_falsy(self):
        assert not ChangeSet()
        assert len(ChangeSet()) == 0

    def test_summary_counts_fixes_not_lines(self):
        """A multi-line removal counts as one fix but several changes."""
        change_set = ChangeSet((
            _edit("a.js", 3, group=3),
            _edit("a.js", 4, group=3),
            _edit("a.js", 5, group=3),
            _edit("b.js", 1, category="debugger-statements"),
        ))
        summary = change_set.summary()

        assert summary.total_files == 2
        assert summary.total_changes == 4
        assert summary.fixes_by_category == {"console-logs": 1, "debugger-statements": 1}
        assert summary.changes_by_file[Path("a.js")] == 3
        assert summary.total_fixes == 2

    def test_fix_groups_and_only_files(self):
        change_set = ChangeSet((
            _edit("a.js", 3, group=3),
            _edit("a.js", 4, group=3),
            _edit("a.js", 9),
            _edit("b.js", 1),
        ))

        groups = change_set.fix_groups(Path("a.js"))
        assert [[e.line for e in g] for g in groups] == [[3, 4], [9]]

        narrowed = change_set.only_files({Path("b.js")})
        assert narrowed.files == [Path("b.js")]


class TestFixRunResult:
    def test_problems_are_tagged(self):
        result = FixRunResult()
        result.add_problem(ErrorKind.VALIDATION, "Tests failed")

        assert result.has_problem(ErrorKind.VALIDATION)
        assert not result.has_problem(ErrorKind.RESTORE)
        assert result.errors == ["Tests failed"]
