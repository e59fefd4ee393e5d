"""safefix gc command."""

from __future__ import annotations

from pathlib import Path

import click

from safefix.core.config import default_backup_root, load_config
from safefix.core.output import console
from safefix.safety.snapshot import SnapshotStore


@click.command()
@click.option("--max-age", type=float, default=None, help="Remove backups older than this many hours")
@click.option("--list", "list_all", is_flag=True, help="List backups instead of removing them")
def gc(max_age: float | None, list_all: bool):
    """Remove stale backups left behind by earlier runs."""
    project_path = Path.cwd()
    config = load_config(project_path)
    store = SnapshotStore(config.safety.backup_root or default_backup_root(), project_path)

    if list_all:
        handles = store.list_backups()
        if not handles:
            console.print("\n  No backups found.\n")
            return
        console.print("\n  [bold]Backups[/bold]\n")
        for handle in handles:
            console.print(
                f"  {handle.id}  {handle.timestamp:%Y-%m-%d %H:%M:%S}  {len(handle.files)} files"
            )
        console.print()
        return

    hours = max_age if max_age is not None else config.safety.backup_max_age_hours
    removed = store.gc(hours)
    if removed:
        console.print(f"\n  Removed {len(removed)} backups older than {hours:g}h.\n")
    else:
        console.print(f"\n  No backups older than {hours:g}h.\n")
