"""Safe-fix engine: runs one fix transaction from preflight to commit or rollback.

    PREFLIGHT -> COLLECT -> PREVIEW -> [BACKUP] -> APPLY -> VALIDATE -> COMMIT | ROLLBACK

Files are only written once the snapshot exists (when backups are required)
and the working tree was found clean (when that is required). After a write,
either validation passes or the snapshot is restored.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

from rich.console import Console

from safefix.core.config import SafeFixConfig, default_backup_root, load_config, should_skip_file
from safefix.core.errors import ErrorKind, PreconditionError, SafeFixError, VcsError
from safefix.core.models import (
    ChangeSet,
    ChangeSummary,
    Decision,
    Edit,
    FixRunResult,
    Phase,
    SnapshotHandle,
    ValidationOutcome,
    VcsState,
)
from safefix.core.output import console as default_console
from safefix.core.output import print_change_summary, print_dry_run, print_validation
from safefix.fix.changes import apply_edits, read_source, write_source
from safefix.fix.providers import FixProvider, enabled_providers
from safefix.safety.preview import ChangePresenter, DecisionProvider, PromptDecisionProvider
from safefix.safety.snapshot import SnapshotStore
from safefix.safety.validation import Validator
from safefix.safety.vcs import VcsGuard

logger = logging.getLogger("safefix.engine")


def commit_message(summary: ChangeSummary, labels: dict[str, str]) -> str:
    """Commit message enumerating fixed categories and their counts."""
    lines = ["Remove development artifacts", ""]
    for category, count in sorted(summary.fixes_by_category.items()):
        label = labels.get(category, category)
        noun = "statement" if count == 1 else "statements"
        lines.append(f"- Remove {count} {label} {noun}")
    return "\n".join(lines) + "\n"


class SafeFixEngine:
    """Coordinates detection, preview, backup, apply and validation as one unit."""

    def __init__(
        self,
        project_path: Path | None = None,
        config: SafeFixConfig | None = None,
        decisions: DecisionProvider | None = None,
        providers: Sequence[FixProvider] | None = None,
        vcs: VcsGuard | None = None,
        snapshots: SnapshotStore | None = None,
        validator: Validator | None = None,
        console: Console | None = None,
    ):
        self.project_path = (project_path or Path.cwd()).resolve()
        self.config = config or load_config(self.project_path)
        self.console = console or default_console
        self.decisions = decisions or PromptDecisionProvider(self.console)
        self.providers = list(providers) if providers is not None else enabled_providers(
            self.config, self.project_path
        )
        self.vcs = vcs or VcsGuard(self.project_path, self.config.safety.branch_prefix)
        self.snapshots = snapshots or SnapshotStore(
            self.config.safety.backup_root or default_backup_root(), self.project_path
        )
        self.validator = validator or Validator(self.project_path, self.config.validation)
        self.presenter = ChangePresenter(self.decisions, self.console, self.project_path)

        self._vcs_state = VcsState(is_repository=False)
        self._handle: SnapshotHandle | None = None
        self._written: list[Path] = []
        self._validated = False

    def run(self, target_files: Iterable[Path]) -> FixRunResult:
        """Run one transaction over ``target_files`` and report what happened."""
        result = FixRunResult()
        self._handle = None
        self._written = []
        self._validated = False
        try:
            self._run(list(target_files), result)
        except SafeFixError as exc:
            logger.error("Fix run stopped during %s: %s", result.phase.value, exc.message)
            result.add_problem(exc.kind, str(exc))
            self._discard_unused_snapshot()
            result.success = False
            result.phase = Phase.ABORTED
        except BaseException:
            # Interrupts included: written but unvalidated files never stay behind.
            if self._written and not self._validated:
                self._restore_after_fault(result)
            raise
        return result

    def _run(self, target_files: list[Path], result: FixRunResult) -> None:
        safety = self.config.safety

        self._preflight(result)

        result.phase = Phase.COLLECT
        change_set = self.collect(target_files, result)
        if not change_set:
            logger.info("No fixes needed")
            self._finish(result)
            return

        result.phase = Phase.PREVIEW
        change_set = self._preview(change_set)
        if not change_set:
            logger.info("No changes selected; nothing was modified")
            self._finish(result)
            return

        if safety.dry_run:
            print_dry_run(change_set, self.presenter.display_name)
            self._finish(result)
            return

        if safety.require_backup:
            result.phase = Phase.BACKUP
            change_set = self._backup(change_set, result)
            if not change_set:
                return

        result.phase = Phase.APPLY
        if not self._apply(change_set, result):
            return

        result.phase = Phase.VALIDATE
        outcome = self._validate()
        result.validation = outcome
        if outcome is not None and not outcome.success:
            self._rollback(result, outcome)
            return

        self._validated = True
        self._commit(change_set, result)
        self._finish(result)

    def _finish(self, result: FixRunResult) -> None:
        result.success = True
        result.phase = Phase.DONE

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _preflight(self, result: FixRunResult) -> None:
        result.phase = Phase.PREFLIGHT
        safety = self.config.safety
        logger.info("Performing pre-flight checks")

        if safety.require_git_clean and not safety.dry_run:
            self._vcs_state = self.vcs.require_clean()
            if self._vcs_state.is_repository:
                result.recovery_branch = self.vcs.create_recovery_point()
                self._vcs_state.recovery_branch = result.recovery_branch
            else:
                logger.info("%s is not a git repository; skipping clean-tree check", self.project_path)
        else:
            try:
                self._vcs_state = self.vcs.check_status()
            except VcsError as exc:
                logger.warning("Could not read git status: %s", exc)
                self._vcs_state = VcsState(is_repository=False)

        self.snapshots.initialize()
        self.snapshots.gc(safety.backup_max_age_hours)

        validation = self.config.validation
        if validation.enabled and validation.check_baseline and not safety.dry_run:
            baseline = self.validator.run()
            if not baseline.success:
                print_validation(baseline)
                if not safety.auto_confirm and not self.decisions.confirm(
                    "Validation checks are failing. Continue anyway?", default=False
                ):
                    raise PreconditionError(
                        "Aborted due to failing validation checks",
                        hint="Fix the failing checks first, or disable them with --no-validation.",
                    )
                result.warnings.append("Validation was already failing before any change")

    def discover(self, path: Path | None = None) -> list[Path]:
        """Collect every file some provider handles, excluding configured patterns."""
        path = (path or self.project_path).resolve()
        if path.is_file():
            return [path]

        found: list[Path] = []
        for file_path in path.rglob("*"):
            if not file_path.is_file():
                continue
            if not any(p.applies_to(file_path) for p in self.providers):
                continue
            parts = file_path.relative_to(path).parts[:-1]
            if any(excl.rstrip("/") in parts for excl in self.config.exclude):
                continue
            found.append(file_path)
        return sorted(found)

    def collect(self, target_files: Sequence[Path], result: FixRunResult | None = None) -> ChangeSet:
        """Run every provider over the (whitelist-filtered, capped) file list."""
        whitelist = self.config.whitelist
        cap = self.config.safety.max_files_per_run

        resolved = []
        for raw in target_files:
            path = Path(raw)
            if not path.is_absolute():
                path = self.project_path / path
            resolved.append(path.resolve())

        files = []
        for path in dict.fromkeys(resolved):
            if should_skip_file(path, whitelist, self.project_path):
                logger.debug("Skipping whitelisted file %s", path)
                continue
            if not any(p.applies_to(path) for p in self.providers):
                continue
            files.append(path)

        if cap and len(files) > cap:
            logger.info("Limiting run to %d of %d files", cap, len(files))
            if result is not None:
                result.warnings.append(
                    f"Only the first {cap} of {len(files)} files were processed (max files per run)"
                )
            files = files[:cap]

        edits: list[Edit] = []
        for path in files:
            try:
                source = read_source(path)
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Could not read %s: %s", path, exc)
                if result is not None:
                    result.warnings.append(f"Skipped {path}: {exc}")
                continue

            taken: set[int] = set()
            for provider in self.providers:
                if not provider.applies_to(path):
                    continue
                candidates = provider.find_candidates(path, source)
                if not candidates:
                    continue
                built = provider.build_edits(path, source, candidates)
                edits.extend(self._without_overlaps(built, taken))

        change_set = ChangeSet(tuple(edits))
        summary = change_set.summary()
        logger.info("Found %d potential fixes in %d files", summary.total_fixes, summary.total_files)
        return change_set

    @staticmethod
    def _without_overlaps(edits: list[Edit], taken: set[int]) -> list[Edit]:
        """Drop whole fixes that touch a line an earlier provider already edits."""
        groups: dict[int, list[Edit]] = {}
        for edit in edits:
            groups.setdefault(edit.group, []).append(edit)
        kept = []
        for group in groups.values():
            lines = {e.line for e in group}
            if lines & taken:
                continue
            taken.update(lines)
            kept.extend(group)
        return kept

    def _preview(self, change_set: ChangeSet) -> ChangeSet:
        if self.config.safety.auto_confirm:
            print_change_summary(change_set.summary(), self.presenter.display_name)
            return change_set

        decision = self.presenter.decide(change_set)
        if decision in (Decision.ABORT, Decision.SKIP_ALL):
            logger.info("Operation cancelled by user (%s)", decision.value)
            return ChangeSet()
        if decision is Decision.REVIEW_PER_FILE:
            return self.presenter.refine(change_set)
        return change_set

    def _backup(self, change_set: ChangeSet, result: FixRunResult) -> ChangeSet:
        handle = self.snapshots.create(change_set.files)
        self._handle = handle
        result.backup_id = handle.id

        for path, reason in handle.excluded.items():
            result.warnings.append(f"Not fixing {path}: backup failed ({reason})")

        narrowed = change_set.only_files(set(handle.files))
        if not narrowed:
            self.snapshots.cleanup(handle)
            self._handle = None
            result.add_problem(ErrorKind.BACKUP, "No file could be backed up; nothing was changed")
            result.phase = Phase.ABORTED
        return narrowed

    def _apply(self, change_set: ChangeSet, result: FixRunResult) -> bool:
        # Compute every file's new text before writing anything.
        new_contents: dict[Path, str] = {}
        for path, edits in change_set.by_file().items():
            try:
                source = read_source(path)
            except (OSError, UnicodeDecodeError) as exc:
                raise SafeFixError(f"Could not re-read {path}: {exc}") from exc
            new_contents[path] = apply_edits(source, edits)

        for path, content in new_contents.items():
            try:
                write_source(path, content)
            except OSError as exc:
                logger.error("Failed to write %s: %s", path, exc)
                result.add_problem(ErrorKind.INTERNAL, f"Failed to write {path}: {exc}")
                self._restore(result)
                result.phase = Phase.ROLLBACK
                return False
            self._written.append(path)

        result.files_modified = len(new_contents)
        result.changes_applied = len(change_set)
        logger.info("Applied %d changes to %d files", result.changes_applied, result.files_modified)
        return True

    def _validate(self) -> ValidationOutcome | None:
        if not self.config.validation.enabled:
            return None
        outcome = self.validator.run()
        if outcome.success:
            logger.info("All validation checks passed")
        return outcome

    def _rollback(self, result: FixRunResult, outcome: ValidationOutcome) -> None:
        result.phase = Phase.ROLLBACK
        print_validation(outcome)
        failed = ", ".join(c.name for c in outcome.failed)

        if self._handle is None:
            result.add_problem(
                ErrorKind.VALIDATION,
                f"Validation failed ({failed}); no backup was taken, changes were NOT rolled back",
            )
            return

        logger.error("Validation failed (%s); rolling back", failed)
        result.add_problem(ErrorKind.VALIDATION, f"Validation failed ({failed}); changes rolled back")
        self._restore(result)

    def _restore(self, result: FixRunResult) -> None:
        if self._handle is None:
            if self._written:
                result.add_problem(
                    ErrorKind.RESTORE,
                    f"No backup available; {len(self._written)} files were left modified",
                )
            return
        if not self.snapshots.verify(self._handle):
            logger.warning("Backup %s is incomplete; restoring what is available", self._handle.id)
        failures = self.snapshots.restore(self._handle)
        result.rolled_back = True
        result.restore_failures = failures
        for failure in failures:
            result.add_problem(ErrorKind.RESTORE, f"Could not restore {failure}")
        if failures and result.recovery_branch:
            result.warnings.append(
                f"Recover manually with: git reset --hard {result.recovery_branch}"
            )

    def _commit(self, change_set: ChangeSet, result: FixRunResult) -> None:
        result.phase = Phase.COMMIT
        if self._handle is not None:
            try:
                self.snapshots.cleanup(self._handle)
            except (OSError, SafeFixError) as exc:
                logger.warning("Could not remove backup %s: %s", self._handle.id, exc)
                result.warnings.append(f"Backup {self._handle.id} was kept: {exc}")

        if not self._vcs_state.is_repository:
            return
        auto_commit = self.config.safety.auto_commit
        if auto_commit is None:
            try:
                auto_commit = self.decisions.confirm("Would you like to commit these changes?", default=True)
            except EOFError:
                result.warnings.append("No answer to the commit prompt; changes were left uncommitted")
                return
        if not auto_commit:
            return

        labels = {p.category: p.label for p in self.providers}
        message = commit_message(change_set.summary(), labels)
        try:
            self.vcs.commit(self._written, message)
        except VcsError as exc:
            logger.warning("Commit failed: %s", exc)
            result.warnings.append(f"Failed to commit changes; commit manually ({exc.message})")
            return
        result.committed = True

    def _restore_after_fault(self, result: FixRunResult) -> None:
        if self._handle is None:
            logger.error(
                "Run interrupted after writing %d files without a backup; recover with the recovery branch",
                len(self._written),
            )
            return
        logger.error("Run interrupted after writing files; restoring backup %s", self._handle.id)
        result.restore_failures = self.snapshots.restore(self._handle)
        result.rolled_back = True

    def _discard_unused_snapshot(self) -> None:
        """A snapshot taken for a run that never wrote anything is just removed."""
        if self._handle is not None and not self._written and not self._handle.consumed:
            self.snapshots.cleanup(self._handle)
            self._handle = None
