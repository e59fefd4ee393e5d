"""Backup and restore of the files a transaction is about to mutate.

Each handle owns one ``backup-<id>`` directory under the injected root::

    <root>/backup-3f2a.../
        manifest.json
        tree/src/util.js          # files under the project root
        external/abs/path/x.js    # anything outside it

Paths are mirrored rather than flattened, so two files sharing a basename in
different directories never overwrite each other.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import shutil
import time
from datetime import datetime, timedelta
from pathlib import Path, PurePath
from typing import Iterable

from safefix.core.errors import SnapshotError
from safefix.core.models import SnapshotHandle

logger = logging.getLogger("safefix.snapshot")

MANIFEST = "manifest.json"
PREFIX = "backup-"


class SnapshotStore:
    """Owns its backup tree until ``cleanup`` or ``gc`` removes it."""

    def __init__(self, root: Path, project_root: Path | None = None):
        self.root = root
        self.project_root = project_root

    def initialize(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _backup_path(self, directory: Path, file_path: Path) -> Path:
        resolved = file_path.resolve()
        if self.project_root is not None:
            try:
                return directory / "tree" / resolved.relative_to(self.project_root.resolve())
            except ValueError:
                pass
        parts = PurePath(resolved).parts[1:]
        return directory.joinpath("external", *parts)

    def create(self, paths: Iterable[Path]) -> SnapshotHandle:
        """Copy each file into a fresh backup directory.

        Files that cannot be read are left out of the handle (and logged);
        they never abort the snapshot as a whole.
        """
        self.initialize()
        backup_id = secrets.token_hex(8)
        directory = self.root / f"{PREFIX}{backup_id}"
        directory.mkdir(parents=True)
        handle = SnapshotHandle(id=backup_id, timestamp=datetime.now(), directory=directory)

        for file_path in dict.fromkeys(paths):
            backup_path = self._backup_path(directory, file_path)
            try:
                backup_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(file_path, backup_path)
            except OSError as exc:
                logger.warning("Failed to back up %s: %s", file_path, exc)
                handle.excluded[file_path] = str(exc)
                continue
            handle.files[file_path] = backup_path

        self._write_manifest(handle)
        logger.info("Created backup %s with %d files", backup_id, len(handle.files))
        return handle

    def _write_manifest(self, handle: SnapshotHandle) -> None:
        manifest = {
            "id": handle.id,
            "created": handle.timestamp.isoformat(),
            "files": [
                {"file": str(original), "backup": str(backup)}
                for original, backup in handle.files.items()
            ],
            "excluded": {str(k): v for k, v in handle.excluded.items()},
        }
        (handle.directory / MANIFEST).write_text(json.dumps(manifest, indent=2))

    def load(self, backup_id: str) -> SnapshotHandle:
        """Rebuild a handle from a previous run's manifest."""
        directory = self.root / f"{PREFIX}{backup_id}"
        manifest_file = directory / MANIFEST
        if not manifest_file.exists():
            raise SnapshotError(f"No backup with id {backup_id} under {self.root}")
        manifest = json.loads(manifest_file.read_text())
        return SnapshotHandle(
            id=manifest["id"],
            timestamp=datetime.fromisoformat(manifest["created"]),
            directory=directory,
            files={Path(e["file"]): Path(e["backup"]) for e in manifest["files"]},
            excluded={Path(k): v for k, v in manifest.get("excluded", {}).items()},
        )

    def list_backups(self) -> list[SnapshotHandle]:
        if not self.root.exists():
            return []
        handles = []
        for directory in sorted(self.root.glob(f"{PREFIX}*")):
            try:
                handles.append(self.load(directory.name[len(PREFIX):]))
            except (SnapshotError, ValueError, KeyError, json.JSONDecodeError):
                logger.debug("Skipping unreadable backup directory %s", directory)
        return handles

    def restore(self, handle: SnapshotHandle) -> list[str]:
        """Copy every backup over its original.

        Returns a ``"<path>: <reason>"`` entry per file that could not be
        restored; the remaining files are restored regardless.
        """
        if handle.consumed == "cleaned":
            raise SnapshotError(f"Backup {handle.id} was already cleaned up and cannot be restored")

        failures = []
        restored = 0
        for original, backup in handle.files.items():
            try:
                shutil.copyfile(backup, original)
                restored += 1
            except OSError as exc:
                failures.append(f"{original}: {exc}")
        handle.consumed = "restored"

        for failure in failures:
            logger.error("Failed to restore %s", failure)
        logger.info("Restored %d of %d files from backup %s", restored, len(handle.files), handle.id)
        return failures

    def verify(self, handle: SnapshotHandle) -> bool:
        """True only if every recorded backup is currently readable."""
        return all(
            backup.is_file() and os.access(backup, os.R_OK)
            for backup in handle.files.values()
        )

    def cleanup(self, handle: SnapshotHandle) -> None:
        """Delete the backup directory. Calling it twice is harmless."""
        if handle.consumed == "restored":
            raise SnapshotError(f"Backup {handle.id} was used for a restore; keeping it")
        if handle.directory.exists():
            shutil.rmtree(handle.directory)
            logger.debug("Cleaned up backup %s", handle.id)
        handle.consumed = "cleaned"

    def gc(self, max_age_hours: float = 24) -> list[str]:
        """Remove backup directories older than ``max_age_hours``."""
        if not self.root.exists():
            return []
        cutoff = datetime.now() - timedelta(hours=max_age_hours)
        removed = []
        for directory in self.root.glob(f"{PREFIX}*"):
            if not directory.is_dir():
                continue
            created = self._created_at(directory)
            if created >= cutoff:
                continue
            try:
                shutil.rmtree(directory)
            except OSError as exc:
                logger.warning("Could not remove stale backup %s: %s", directory, exc)
                continue
            removed.append(directory.name[len(PREFIX):])
        if removed:
            logger.info("Removed %d stale backups", len(removed))
        return removed

    def _created_at(self, directory: Path) -> datetime:
        manifest_file = directory / MANIFEST
        try:
            return datetime.fromisoformat(json.loads(manifest_file.read_text())["created"])
        except (OSError, ValueError, KeyError, TypeError):
            return datetime.fromtimestamp(directory.stat().st_mtime if directory.exists() else time.time())
