"""Change previews and operator decisions.

Diffs are computed by applying edits to an in-memory copy of each file; the
presenter never writes. Decisions come from an injected DecisionProvider so
non-interactive callers drive the same state machine without a terminal.
"""

from __future__ import annotations

import difflib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.prompt import Confirm, Prompt

from safefix.core.models import ChangeSet, ChangeSummary, Decision, Edit, FileChoice
from safefix.core.output import console as default_console
from safefix.core.output import print_change_summary, print_diff
from safefix.fix.changes import apply_edits, read_source


class DecisionProvider(ABC):
    """Answers the questions a transaction asks its operator."""

    @abstractmethod
    def choose(self, summary: ChangeSummary) -> Decision:
        ...

    @abstractmethod
    def review_file(self, file: Path, edits: Sequence[Edit], diff: str) -> FileChoice:
        ...

    @abstractmethod
    def include_fix(self, edits: Sequence[Edit]) -> bool:
        ...

    @abstractmethod
    def confirm(self, question: str, default: bool = False) -> bool:
        ...


class StaticDecisionProvider(DecisionProvider):
    """Always accepts (or always rejects) without asking anyone."""

    def __init__(self, accept: bool = True, confirm: bool = False):
        self.accept = accept
        self._confirm = confirm

    def choose(self, summary: ChangeSummary) -> Decision:
        return Decision.ACCEPT_ALL if self.accept else Decision.SKIP_ALL

    def review_file(self, file: Path, edits: Sequence[Edit], diff: str) -> FileChoice:
        return FileChoice.ACCEPT if self.accept else FileChoice.REJECT

    def include_fix(self, edits: Sequence[Edit]) -> bool:
        return self.accept

    def confirm(self, question: str, default: bool = False) -> bool:
        return self._confirm


class PromptDecisionProvider(DecisionProvider):
    """Asks on the terminal with rich prompts."""

    def __init__(self, console: Console | None = None):
        self.console = console or default_console

    def choose(self, summary: ChangeSummary) -> Decision:
        self.console.print("  [bold]How would you like to proceed?[/bold]")
        self.console.print("    [green]accept[/green]  Accept all changes")
        self.console.print("    [cyan]review[/cyan]  Review each file")
        self.console.print("    [yellow]skip[/yellow]    Skip all changes")
        self.console.print("    [red]abort[/red]   Cancel operation")
        answer = Prompt.ask(
            "  Choice",
            choices=[d.value for d in Decision],
            default=Decision.ABORT.value,
            console=self.console,
        )
        return Decision(answer)

    def review_file(self, file: Path, edits: Sequence[Edit], diff: str) -> FileChoice:
        answer = Prompt.ask(
            f"  Apply {len(edits)} changes to this file?",
            choices=[c.value for c in FileChoice],
            default=FileChoice.ACCEPT.value,
            console=self.console,
        )
        return FileChoice(answer)

    def include_fix(self, edits: Sequence[Edit]) -> bool:
        first = edits[0]
        lines = f"line {first.line}" if len(edits) == 1 else f"lines {first.line}-{edits[-1].line}"
        self.console.print(f"\n  [yellow]{first.description}[/yellow] ({lines})")
        return Confirm.ask("  Include this change?", default=True, console=self.console)

    def confirm(self, question: str, default: bool = False) -> bool:
        return Confirm.ask(f"  {question}", default=default, console=self.console)


class ChangePresenter:
    def __init__(
        self,
        decisions: DecisionProvider,
        console: Console | None = None,
        project_root: Path | None = None,
    ):
        self.decisions = decisions
        self.console = console or default_console
        self.project_root = project_root

    def display_name(self, file: Path) -> str:
        if self.project_root is not None:
            try:
                return file.resolve().relative_to(self.project_root.resolve()).as_posix()
            except ValueError:
                pass
        return file.as_posix()

    def render_diff(self, file: Path, edits: Sequence[Edit], source: str | None = None) -> str:
        """Unified diff of ``edits`` against the file's current (or given) text."""
        original = read_source(file) if source is None else source
        modified = apply_edits(original, edits)
        name = self.display_name(file)
        return "\n".join(difflib.unified_diff(
            original.split("\n"),
            modified.split("\n"),
            fromfile=f"a/{name}",
            tofile=f"b/{name}",
            lineterm="",
            n=2,
        ))

    def summarize(self, change_set: ChangeSet) -> ChangeSummary:
        return change_set.summary()

    def decide(self, change_set: ChangeSet) -> Decision:
        summary = self.summarize(change_set)
        print_change_summary(summary, self.display_name)
        return self.decisions.choose(summary)

    def refine(self, change_set: ChangeSet) -> ChangeSet:
        """Walk file by file and return the edits the operator kept."""
        selected: list[Edit] = []
        for file, edits in change_set.by_file().items():
            diff = self.render_diff(file, edits)
            self.console.print(f"\n  [bold]{self.display_name(file)}[/bold]")
            print_diff(diff)

            choice = self.decisions.review_file(file, edits, diff)
            if choice is FileChoice.ACCEPT:
                selected.extend(edits)
            elif choice is FileChoice.CURATE:
                for group in change_set.fix_groups(file):
                    if self.decisions.include_fix(group):
                        selected.extend(group)
        return ChangeSet(tuple(selected))
