"""safefix fix command."""

from __future__ import annotations

from pathlib import Path

import click

from safefix.core.config import load_config
from safefix.core.output import console, get_progress, print_run_result
from safefix.fix.engine import SafeFixEngine
from safefix.fix.providers import ALL_PROVIDERS
from safefix.safety.preview import PromptDecisionProvider, StaticDecisionProvider


@click.command()
@click.argument("target", default=".")
@click.option("--dry-run", is_flag=True, help="Show what would change without modifying files")
@click.option("--yes", "-y", is_flag=True, help="Apply all changes without prompting")
@click.option("--no-git-check", is_flag=True, help="Allow running on a dirty working tree")
@click.option("--no-backup", is_flag=True, help="Do not back up files before changing them")
@click.option("--no-validation", is_flag=True, help="Skip tests, type check and linter")
@click.option("--max-files", type=int, default=None, help="Maximum files to change in one run")
@click.option("--only", type=str, default=None, help="Fix only these categories (comma-separated)")
@click.option("--commit/--no-commit", "commit", default=None, help="Commit the result without asking")
def fix(
    target: str,
    dry_run: bool,
    yes: bool,
    no_git_check: bool,
    no_backup: bool,
    no_validation: bool,
    max_files: int | None,
    only: str | None,
    commit: bool | None,
):
    """Remove console.log calls, debugger statements and other leftovers.

    TARGET can be the project directory (default: current dir) or a single
    file inside it. Every change is backed up and validated; a failing check
    rolls all files back.
    """
    target_path = Path(target).resolve()
    project_path = target_path if target_path.is_dir() else Path.cwd().resolve()
    config = load_config(project_path)

    safety = config.safety
    safety.dry_run = safety.dry_run or dry_run
    safety.auto_confirm = safety.auto_confirm or yes
    if no_git_check:
        safety.require_git_clean = False
    if no_backup:
        safety.require_backup = False
    if max_files is not None:
        safety.max_files_per_run = max_files
    if no_validation:
        v = config.validation
        v.run_tests = v.run_type_check = v.run_linter = False
        v.custom_commands = []

    if only:
        keys = [p.config_key for p in ALL_PROVIDERS]
        names = [c.strip() for c in only.split(",") if c.strip()]
        wanted = {n.replace("-", "_") for n in names}
        unknown = [n for n in names if n.replace("-", "_") not in keys]
        if unknown or not wanted:
            raise click.BadParameter(
                f"Unknown category {', '.join(unknown) or repr(only)}; "
                f"choose from {', '.join(k.replace('_', '-') for k in keys)}",
                param_hint="--only",
            )
        for key in keys:
            config.fixes.get(key).enabled = key in wanted

    if commit is not None:
        safety.auto_commit = commit
    if safety.auto_confirm:
        decisions = StaticDecisionProvider(accept=True, confirm=False)
    else:
        decisions = PromptDecisionProvider(console)

    engine = SafeFixEngine(project_path, config, decisions=decisions)
    with get_progress() as progress:
        task = progress.add_task(f"Looking for files in {target_path.name}...", total=None)
        files = engine.discover(target_path)
        progress.update(task, completed=True)

    if not files:
        console.print("\n  No files to check.\n")
        return

    console.print(f"\n  Checking {len(files)} files in [bold]{project_path.name}[/bold]...")
    result = engine.run(files)
    print_run_result(result, dry_run=safety.dry_run)

    if not result.success:
        raise SystemExit(1)
