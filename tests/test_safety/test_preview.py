"""Tests for change previews and decision providers."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Sequence

from rich.console import Console

from safefix.core.models import ChangeSet, ChangeSummary, Decision, Edit, EditOperation, FileChoice
from safefix.safety.preview import ChangePresenter, DecisionProvider, StaticDecisionProvider


class ScriptedDecisions(DecisionProvider):
    """Answers from fixed scripts so per-file review can be driven in tests."""

    def __init__(self, decision: Decision, files: dict[str, FileChoice], fixes: list[bool] | None = None):
        self.decision = decision
        self.files = files
        self.fixes = list(fixes or [])

    def choose(self, summary: ChangeSummary) -> Decision:
        return self.decision

    def review_file(self, file: Path, edits: Sequence[Edit], diff: str) -> FileChoice:
        return self.files[file.name]

    def include_fix(self, edits: Sequence[Edit]) -> bool:
        return self.fixes.pop(0)

    def confirm(self, question: str, default: bool = False) -> bool:
        return default


def _quiet() -> Console:
    return Console(file=io.StringIO())


def _change_set(tmp_path: Path) -> ChangeSet:
    a = tmp_path / "a.js"
    b = tmp_path / "b.js"
    a.write_text("one();\nconsole.log(1);\ntwo();\nconsole.log(2);\n")
    b.write_text("console.log(3);\nthree();\n")
    return ChangeSet((
        Edit(a, 2, EditOperation.REMOVE, old_text="console.log(1);", category="console-logs", group=2),
        Edit(a, 4, EditOperation.REMOVE, old_text="console.log(2);", category="console-logs", group=4),
        Edit(b, 1, EditOperation.REMOVE, old_text="console.log(3);", category="console-logs", group=1),
    ))


class TestRenderDiff:
    def test_unified_diff_uses_relative_names(self, tmp_path: Path):
        change_set = _change_set(tmp_path)
        presenter = ChangePresenter(StaticDecisionProvider(), _quiet(), tmp_path)
        a = tmp_path / "a.js"

        diff = presenter.render_diff(a, change_set.by_file()[a])

        assert "--- a/a.js" in diff
        assert "+++ b/a.js" in diff
        assert "-console.log(1);" in diff
        assert "-console.log(2);" in diff

    def test_diff_does_not_write(self, tmp_path: Path):
        change_set = _change_set(tmp_path)
        presenter = ChangePresenter(StaticDecisionProvider(), _quiet(), tmp_path)
        a = tmp_path / "a.js"
        before = a.read_text()

        presenter.render_diff(a, change_set.by_file()[a])

        assert a.read_text() == before


class TestDecisions:
    def test_static_provider(self, tmp_path: Path):
        presenter = ChangePresenter(StaticDecisionProvider(accept=True), _quiet(), tmp_path)
        assert presenter.decide(_change_set(tmp_path)) is Decision.ACCEPT_ALL

        presenter = ChangePresenter(StaticDecisionProvider(accept=False), _quiet(), tmp_path)
        assert presenter.decide(_change_set(tmp_path)) is Decision.SKIP_ALL

    def test_refine_per_file(self, tmp_path: Path):
        """Rejected files drop out; curated files keep only the chosen fixes."""
        change_set = _change_set(tmp_path)
        decisions = ScriptedDecisions(
            Decision.REVIEW_PER_FILE,
            {"a.js": FileChoice.CURATE, "b.js": FileChoice.REJECT},
            fixes=[False, True],
        )
        presenter = ChangePresenter(decisions, _quiet(), tmp_path)

        refined = presenter.refine(change_set)

        assert [(e.file.name, e.line) for e in refined.edits] == [("a.js", 4)]

    def test_summary(self, tmp_path: Path):
        presenter = ChangePresenter(StaticDecisionProvider(), _quiet(), tmp_path)
        summary = presenter.summarize(_change_set(tmp_path))

        assert summary.total_files == 2
        assert summary.fixes_by_category == {"console-logs": 3}
