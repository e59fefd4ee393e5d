"""Git preconditions and recovery branches.

The recovery branch is a durable fallback that survives the process: even if
in-memory rollback fails, ``git reset --hard <branch>`` brings the tree back.
Branches created here are never deleted by safefix.
"""

from __future__ import annotations

import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from safefix.core.errors import PreconditionError, VcsError
from safefix.core.models import VcsState

logger = logging.getLogger("safefix.vcs")

GIT_TIMEOUT = 30


class VcsGuard:
    """Version-control checks run before and after a fix transaction."""

    def __init__(self, project_root: Path, branch_prefix: str = "safefix"):
        self.project_root = project_root
        self.branch_prefix = branch_prefix

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        try:
            result = subprocess.run(
                ["git", *args],
                capture_output=True,
                text=True,
                cwd=str(self.project_root),
                timeout=GIT_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise VcsError(f"Could not run git {' '.join(args)}: {exc}") from exc
        if check and result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise VcsError(f"git {' '.join(args)} failed: {detail}")
        return result

    def is_repository(self) -> bool:
        try:
            return self._git("rev-parse", "--git-dir", check=False).returncode == 0
        except VcsError:
            return False

    def check_status(self) -> VcsState:
        """Classify the working tree. No repository is a state, not an error."""
        if not self.is_repository():
            return VcsState(is_repository=False)

        status = self._git("status", "--porcelain").stdout
        changed = [line[3:] for line in status.splitlines() if line.strip()]
        branch = self._git("rev-parse", "--abbrev-ref", "HEAD", check=False).stdout.strip()
        head = self._git("rev-parse", "HEAD", check=False)
        return VcsState(
            is_repository=True,
            is_clean=not changed,
            branch=branch,
            head_commit=head.stdout.strip() if head.returncode == 0 else "",
            changed_paths=changed,
        )

    def require_clean(self, require_repository: bool = False) -> VcsState:
        state = self.check_status()
        if not state.is_repository:
            if require_repository:
                raise PreconditionError(
                    f"{self.project_root} is not a git repository.",
                    hint="Run `git init` and commit your work, or pass --no-git-check.",
                )
            return state
        if not state.is_clean:
            listed = ", ".join(state.changed_paths[:5])
            more = f" (+{len(state.changed_paths) - 5} more)" if len(state.changed_paths) > 5 else ""
            raise PreconditionError(
                f"Working tree is not clean: {listed}{more}",
                hint="Commit or stash your changes before running fixes. "
                "Run `git status` to see uncommitted changes.",
            )
        return state

    def branch_exists(self, name: str) -> bool:
        return self._git("rev-parse", "--verify", "--quiet", f"refs/heads/{name}", check=False).returncode == 0

    def create_recovery_point(self) -> str:
        """Create a timestamp-named branch at HEAD without switching to it."""
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
        base = f"{self.branch_prefix}-backup-{stamp.replace(':', '-').replace('.', '-')}"
        name = base
        counter = 1
        while self.branch_exists(name):
            name = f"{base}-{counter}"
            counter += 1
        self._git("branch", name)
        logger.info("Created recovery branch %s", name)
        return name

    def restore_from_recovery_point(self, name: str) -> None:
        if not self.branch_exists(name):
            raise VcsError(f"Recovery branch {name} does not exist")
        self._git("reset", "--hard", name)
        logger.info("Working tree reset to recovery branch %s", name)

    def commit(self, paths: Sequence[Path], message: str) -> str:
        """Stage exactly ``paths`` and commit them. Returns the new HEAD."""
        rel = []
        for path in paths:
            try:
                rel.append(str(path.resolve().relative_to(self.project_root.resolve())))
            except ValueError:
                rel.append(str(path))
        self._git("add", "--", *rel)
        self._git("commit", "-m", message)
        return self._git("rev-parse", "HEAD").stdout.strip()
