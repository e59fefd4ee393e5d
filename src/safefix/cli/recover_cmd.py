"""safefix recover command."""

from __future__ import annotations

from pathlib import Path

import click
from rich.prompt import Confirm

from safefix.core.config import default_backup_root, load_config
from safefix.core.errors import SafeFixError
from safefix.core.output import console, error_console
from safefix.safety.snapshot import SnapshotStore
from safefix.safety.vcs import VcsGuard


@click.command()
@click.option("--branch", "branch", help="Hard-reset the working tree to this recovery branch")
@click.option("--backup", "backup_id", help="Copy the files of this backup back into place")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompts")
def recover(branch: str | None, backup_id: str | None, yes: bool):
    """Manually undo a fix run.

    Use --branch with the recovery branch printed by `safefix fix`, or
    --backup with a backup ID that was kept after a failed rollback.
    """
    project_path = Path.cwd()
    config = load_config(project_path)

    if not branch and not backup_id:
        console.print("\n  Usage: safefix recover --branch <name> or safefix recover --backup <id>")
        console.print("  Run `safefix gc --list` to see kept backups.\n")
        return

    if not yes and not Confirm.ask("  This overwrites files in your working tree. Continue?", default=False):
        console.print("  [dim]Cancelled.[/dim]")
        return

    try:
        if branch:
            VcsGuard(project_path, config.safety.branch_prefix).restore_from_recovery_point(branch)
            console.print(f"\n  [green]✅ Reset to {branch}[/green]\n")
            return

        store = SnapshotStore(config.safety.backup_root or default_backup_root(), project_path)
        handle = store.load(backup_id)
        failures = store.restore(handle)
    except SafeFixError as exc:
        error_console.print(f"\n  [red]❌ {exc}[/red]\n")
        raise SystemExit(1)

    if failures:
        console.print(f"\n  [red]❌ {len(failures)} files could not be restored:[/red]")
        for failure in failures:
            console.print(f"    - {failure}")
        console.print()
        raise SystemExit(1)
    console.print(f"\n  [green]✅ Restored {len(handle.files)} files from backup {handle.id}[/green]\n")
