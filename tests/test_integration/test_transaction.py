"""Integration tests: collect -> backup -> apply -> validate -> commit or rollback."""

from __future__ import annotations

import shlex
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from safefix.core.config import SafeFixConfig, load_config
from safefix.core.errors import ErrorKind
from safefix.core.models import Phase
from safefix.fix.engine import SafeFixEngine, commit_message
from safefix.safety.preview import StaticDecisionProvider
from safefix.safety.snapshot import SnapshotStore
from safefix.safety.validation import Validator

PYTHON = shlex.quote(sys.executable)
PASS = f"{PYTHON} -c \"print('ok')\""
# Passes while src/app.js still logs, fails once the log is gone.
NEEDS_LOG = f"{PYTHON} -c \"import sys; sys.exit('console.log' not in open('src/app.js').read())\""

APP = (
    "function main() {\n"
    "  console.log('starting');\n"
    "  return 42;\n"
    "}\n"
    "module.exports = main;\n"
)
UTIL = "export function add(a, b) {\n  debugger;\n  return a + b;\n}\n"

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


class CountingStore(SnapshotStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.restore_calls = 0

    def restore(self, handle):
        self.restore_calls += 1
        return super().restore(handle)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "vendor").mkdir()
    (root / "src" / "app.js").write_text(APP)
    (root / "src" / "util.js").write_text(UTIL)
    (root / "vendor" / "lib.js").write_text("console.log('vendored');\n")
    return root.resolve()


def _config(project: Path, tmp_path: Path) -> SafeFixConfig:
    config = load_config(project)
    config.safety.backup_root = tmp_path / "backups"
    config.safety.require_git_clean = False
    validation = config.validation
    validation.run_tests = validation.run_type_check = validation.run_linter = False
    return config


def _engine(project: Path, config: SafeFixConfig, accept: bool = True, confirm: bool = False, store=None):
    return SafeFixEngine(
        project,
        config,
        decisions=StaticDecisionProvider(accept=accept, confirm=confirm),
        snapshots=store,
    )


class TestSuccessfulRun:
    def test_removes_artifacts_and_cleans_backup(self, project: Path, tmp_path: Path):
        config = _config(project, tmp_path)
        config.validation.custom_commands = [PASS]
        engine = _engine(project, config)

        result = engine.run(engine.discover())

        assert result.success
        assert result.phase is Phase.DONE
        assert result.files_modified == 2
        assert "console.log" not in (project / "src" / "app.js").read_text()
        assert "debugger" not in (project / "src" / "util.js").read_text()
        assert result.validation is not None and result.validation.success
        assert not list((tmp_path / "backups").glob("backup-*"))

    def test_whitelisted_glob_never_in_change_set(self, project: Path, tmp_path: Path):
        """Files under vendor/ match the default whitelist and are never edited."""
        engine = _engine(project, _config(project, tmp_path))
        vendor = project / "vendor" / "lib.js"

        change_set = engine.collect([vendor, project / "src" / "app.js"])

        assert vendor not in change_set.files
        assert project / "src" / "app.js" in change_set.files

        engine.run([vendor])
        assert vendor.read_text() == "console.log('vendored');\n"

    def test_second_run_finds_nothing(self, project: Path, tmp_path: Path):
        config = _config(project, tmp_path)
        _engine(project, config).run(_engine(project, config).discover())

        again = _engine(project, config)
        assert not again.collect(again.discover())

    def test_duplicate_paths_collected_once(self, project: Path, tmp_path: Path):
        """Relative and absolute spellings of one file yield one group of edits."""
        engine = _engine(project, _config(project, tmp_path))
        app = project / "src" / "app.js"
        targets = [Path("src/app.js"), app, project / "src" / ".." / "src" / "app.js"]

        change_set = engine.collect(targets)

        assert change_set.files == [app]
        result = _engine(project, _config(project, tmp_path)).run(targets)
        assert result.success
        assert result.files_modified == 1
        assert "console.log" not in app.read_text()

    def test_backup_cleanup_failure_keeps_fixes(self, project: Path, tmp_path: Path):
        """Once checks pass, trouble removing the backup is only a warning."""

        class LockedStore(SnapshotStore):
            def cleanup(self, handle):
                raise PermissionError("backup is locked")

        store = LockedStore(tmp_path / "backups", project)
        engine = _engine(project, _config(project, tmp_path), store=store)

        result = engine.run(engine.discover())

        assert result.success
        assert not result.rolled_back
        assert "console.log" not in (project / "src" / "app.js").read_text()
        assert any("was kept" in w for w in result.warnings)

    def test_file_cap(self, project: Path, tmp_path: Path):
        config = _config(project, tmp_path)
        config.safety.max_files_per_run = 1
        engine = _engine(project, config)

        result = engine.run(engine.discover())

        assert result.files_modified == 1
        assert any("max files" in w for w in result.warnings)


class TestNothingWritten:
    def test_dry_run(self, project: Path, tmp_path: Path):
        config = _config(project, tmp_path)
        config.safety.dry_run = True
        engine = _engine(project, config)

        result = engine.run(engine.discover())

        assert result.success
        assert (project / "src" / "app.js").read_text() == APP
        assert result.backup_id is None
        assert result.files_modified == 0

    def test_operator_skips(self, project: Path, tmp_path: Path):
        engine = _engine(project, _config(project, tmp_path), accept=False)

        result = engine.run(engine.discover())

        assert result.files_modified == 0
        assert (project / "src" / "app.js").read_text() == APP
        assert (project / "src" / "util.js").read_text() == UTIL

    def test_failing_baseline_aborts(self, project: Path, tmp_path: Path):
        """Checks already failing before any change stop the run."""
        config = _config(project, tmp_path)
        config.validation.custom_commands = [f"{PYTHON} -c \"raise SystemExit(1)\""]
        engine = _engine(project, config, confirm=False)

        result = engine.run(engine.discover())

        assert not result.success
        assert result.phase is Phase.ABORTED
        assert result.has_problem(ErrorKind.PRECONDITION)
        assert (project / "src" / "app.js").read_text() == APP


class TestRollback:
    def test_failed_check_restores_every_file(self, project: Path, tmp_path: Path):
        """Three checks, the second fails: all three reported, one restore."""
        config = _config(project, tmp_path)
        v = config.validation
        v.run_tests = v.run_type_check = v.run_linter = True
        v.test_command = PASS
        v.type_check_command = NEEDS_LOG
        v.lint_command = PASS
        store = CountingStore(tmp_path / "backups", project)
        engine = _engine(project, config, store=store)

        result = engine.run(engine.discover())

        assert not result.success
        assert result.rolled_back
        assert store.restore_calls == 1
        assert [c.name for c in result.validation.checks] == ["Tests", "Type Check", "Linter"]
        assert [c.name for c in result.validation.failed] == ["Type Check"]
        assert result.has_problem(ErrorKind.VALIDATION)
        assert (project / "src" / "app.js").read_text() == APP
        assert (project / "src" / "util.js").read_text() == UTIL
        # The used backup is kept for inspection.
        assert (tmp_path / "backups" / f"backup-{result.backup_id}").exists()

    def test_write_failure_restores(self, project: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        import safefix.fix.engine as engine_module

        real_write = engine_module.write_source
        written = []

        def flaky_write(path, content):
            if written:
                raise OSError("disk full")
            written.append(path)
            real_write(path, content)

        monkeypatch.setattr(engine_module, "write_source", flaky_write)
        engine = _engine(project, _config(project, tmp_path))

        result = engine.run(engine.discover())

        assert not result.success
        assert result.rolled_back
        assert (project / "src" / "app.js").read_text() == APP
        assert (project / "src" / "util.js").read_text() == UTIL

    def test_interrupt_during_validation_restores(self, project: Path, tmp_path: Path):
        """Ctrl-C while the checks run puts the original files back before propagating."""

        class InterruptedValidator(Validator):
            def run(self):
                raise KeyboardInterrupt

        config = _config(project, tmp_path)
        config.validation.custom_commands = [PASS]
        config.validation.check_baseline = False
        engine = SafeFixEngine(
            project,
            config,
            decisions=StaticDecisionProvider(),
            validator=InterruptedValidator(project, config.validation),
        )

        with pytest.raises(KeyboardInterrupt):
            engine.run(engine.discover())

        assert (project / "src" / "app.js").read_text() == APP
        assert (project / "src" / "util.js").read_text() == UTIL

    def test_unbackedup_file_is_not_touched(self, project: Path, tmp_path: Path):
        """A file the snapshot could not copy is dropped from the run."""
        app = project / "src" / "app.js"

        class PartialStore(SnapshotStore):
            def create(self, paths):
                paths = list(paths)
                handle = super().create([p for p in paths if p != app])
                handle.excluded[app] = "permission denied"
                return handle

        engine = _engine(project, _config(project, tmp_path), store=PartialStore(tmp_path / "backups", project))

        result = engine.run(engine.discover())

        assert result.success
        assert app.read_text() == APP
        assert "debugger" not in (project / "src" / "util.js").read_text()
        assert any("backup failed" in w for w in result.warnings)


@requires_git
class TestGitRepository:
    def test_dirty_tree_aborts_before_changes(self, repo: Path, tmp_path: Path):
        (repo / "app.js").write_text("console.log('edited');\n")
        config = _config(repo, tmp_path)
        config.safety.require_git_clean = True

        result = _engine(repo, config).run([repo / "app.js"])

        assert not result.success
        assert result.has_problem(ErrorKind.PRECONDITION)
        assert (repo / "app.js").read_text() == "console.log('edited');\n"

    def test_recovery_branch_and_commit(self, repo: Path, tmp_path: Path):
        config = _config(repo, tmp_path)
        config.safety.require_git_clean = True

        result = _engine(repo, config, confirm=True).run([repo / "app.js"])

        assert result.success
        assert result.committed
        assert result.recovery_branch.startswith("safefix-backup-")
        log = subprocess.run(
            ["git", "log", "-1", "--format=%B"], cwd=repo, capture_output=True, text=True, check=True
        ).stdout
        assert log.startswith("Remove development artifacts")
        assert "- Remove 1 console.log statement" in log

    def test_unanswered_commit_prompt_keeps_fixes(self, repo: Path, tmp_path: Path):
        """Closed stdin at the commit question leaves the validated fix uncommitted."""

        class ClosedInput(StaticDecisionProvider):
            def confirm(self, question, default=False):
                raise EOFError

        engine = SafeFixEngine(repo, _config(repo, tmp_path), decisions=ClosedInput())

        result = engine.run([repo / "app.js"])

        assert result.success
        assert not result.committed
        assert not result.rolled_back
        assert "console.log" not in (repo / "app.js").read_text()
        assert any("commit prompt" in w for w in result.warnings)
        status = subprocess.run(
            ["git", "status", "--porcelain"], cwd=repo, capture_output=True, text=True, check=True
        ).stdout
        assert "app.js" in status


class TestCommitMessage:
    def test_lists_categories(self, project: Path, tmp_path: Path):
        engine = _engine(project, _config(project, tmp_path))
        summary = engine.collect(engine.discover()).summary()
        labels = {p.category: p.label for p in engine.providers}

        message = commit_message(summary, labels)

        assert message.splitlines()[0] == "Remove development artifacts"
        assert "- Remove 1 console.log statement" in message
        assert "- Remove 1 debugger statement" in message
