"""Rich terminal formatting for safefix output."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from safefix.core.models import ChangeSet, ChangeSummary, FixRunResult, ValidationOutcome

console = Console()
error_console = Console(stderr=True)


def print_change_summary(summary: ChangeSummary, display: Callable[[Path], str] = str) -> None:
    """Print the per-category and per-file counts of a change set."""
    lines = []
    lines.append(f"  Files affected: {summary.total_files}")
    lines.append(f"  Total changes:  {summary.total_changes}")
    lines.append("")
    for category, count in sorted(summary.fixes_by_category.items()):
        lines.append(f"  - {category}: {count}")
    if summary.changes_by_file:
        lines.append("")
        for file, count in summary.changes_by_file.items():
            lines.append(f"  [dim]{escape(display(file))}[/dim]  {count}")

    console.print(Panel(
        "\n".join(lines),
        title="[bold]Change Summary[/bold]",
        border_style="cyan",
        padding=(0, 1),
    ))


def print_diff(diff: str) -> None:
    for diff_line in diff.splitlines():
        text = escape(diff_line)
        if diff_line.startswith(("+++", "---")):
            console.print(f"  [bold]{text}[/bold]")
        elif diff_line.startswith("@@"):
            console.print(f"  [cyan]{text}[/cyan]")
        elif diff_line.startswith("-"):
            console.print(f"  [red]{text}[/red]")
        elif diff_line.startswith("+"):
            console.print(f"  [green]{text}[/green]")
        else:
            console.print(f"  [dim]{text}[/dim]")


def print_dry_run(change_set: ChangeSet, display: Callable[[Path], str] = str) -> None:
    """Print what would be applied, without touching any file."""
    console.print("\n  [yellow bold]DRY RUN[/yellow bold] - no files will be modified\n")
    console.print("  [bold]Changes that would be made:[/bold]\n")
    for file, edits in change_set.by_file().items():
        console.print(f"  [cyan]{escape(display(file))}[/cyan]")
        for edit in edits:
            console.print(f"    Line {edit.line}: {escape(edit.description)}")
        console.print()


def print_validation(outcome: ValidationOutcome) -> None:
    """Print per-check validation results."""
    lines = []
    for check in outcome.checks:
        if check.skipped:
            lines.append(f"  [dim]- {escape(check.name)}  skipped (no command)[/dim]")
        elif check.passed:
            lines.append(f"  [green]✓ {escape(check.name)}[/green]  {check.duration:.2f}s")
        else:
            first = check.error.splitlines()[0] if check.error else "failed"
            lines.append(f"  [red]✗ {escape(check.name)}[/red]  {escape(first)}")
            for out_line in check.output.strip().splitlines()[-5:]:
                lines.append(f"      [dim]{escape(out_line)}[/dim]")

    lines.append("")
    lines.append(f"  Total time: {outcome.duration:.2f}s")
    border = "green" if outcome.success else "red"
    verdict = "All checks passed" if outcome.success else "Some checks failed"

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]Validation: {verdict}[/bold]",
        border_style=border,
        padding=(0, 1),
    ))


def print_run_result(result: FixRunResult, dry_run: bool = False) -> None:
    """Map the result record to console output."""
    console.print()
    if result.success:
        if result.files_modified > 0:
            console.print(
                f"  [green]✅ Applied {result.changes_applied} changes "
                f"to {result.files_modified} files.[/green]"
            )
        elif not dry_run:
            console.print("  [green]✅ Nothing to apply.[/green]")
    else:
        console.print("  [red]❌ Fix operation failed:[/red]")
        for error in result.errors:
            console.print(f"    [red]- {escape(error)}[/red]")

    for warning in result.warnings:
        console.print(f"  [yellow]! {escape(warning)}[/yellow]")
    if result.rolled_back:
        console.print("  [yellow]Changes were rolled back.[/yellow]")
    if result.recovery_branch:
        console.print(
            f"  [dim]Recovery branch: {result.recovery_branch} "
            f"(git reset --hard {result.recovery_branch})[/dim]"
        )
    if result.backup_id and not result.success:
        console.print(f"  [dim]Backup ID: {result.backup_id}[/dim]")

    if result.success and result.files_modified > 0 and not result.committed:
        console.print("\n  [bold]Next steps:[/bold]")
        console.print("    1. Review the changes with: git diff")
        console.print("    2. Commit the changes when satisfied")
    console.print()


def get_progress() -> Progress:
    """Create a progress instance for scanning."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    )
