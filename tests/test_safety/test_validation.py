"""Tests for the validation suite."""

from __future__ import annotations

import json
import shlex
import subprocess
import sys
from pathlib import Path

import pytest

from safefix.core.config import ValidationConfig
from safefix.safety.validation import Validator

PYTHON = shlex.quote(sys.executable)
PASS = f"{PYTHON} -c \"print('ok')\""
FAIL = f"{PYTHON} -c \"import sys; print('boom'); sys.exit(3)\""


def _config(**kwargs) -> ValidationConfig:
    defaults = dict(run_tests=False, run_type_check=False, run_linter=False)
    defaults.update(kwargs)
    return ValidationConfig(**defaults)


class TestRun:
    def test_all_checks_run_when_one_fails(self, tmp_path: Path):
        """A failing check does not stop the ones after it."""
        config = _config(
            run_tests=True,
            run_type_check=True,
            run_linter=True,
            test_command=PASS,
            type_check_command=FAIL,
            lint_command=PASS,
        )

        outcome = Validator(tmp_path, config).run()

        assert [c.name for c in outcome.checks] == ["Tests", "Type Check", "Linter"]
        assert not outcome.success
        assert [c.name for c in outcome.failed] == ["Type Check"]
        assert outcome.failed[0].error == "Exit code 3"
        assert "boom" in outcome.failed[0].output
        assert len(outcome.passed) == 2

    def test_custom_commands(self, tmp_path: Path):
        outcome = Validator(tmp_path, _config(custom_commands=[PASS])).run()

        assert outcome.success
        assert outcome.checks[0].name == f"Custom: {PASS}"

    def test_undecodable_output_does_not_fail_check(self, tmp_path: Path):
        """Tools that print non-UTF-8 bytes are judged by exit code alone."""
        script = r"import sys; sys.stdout.buffer.write(b'\xff\xfe ok\n')"
        command = f"{PYTHON} -c \"{script}\""

        outcome = Validator(tmp_path, _config(custom_commands=[command])).run()

        assert outcome.success
        assert outcome.checks[0].passed
        assert "ok" in outcome.checks[0].output

    def test_missing_command_is_skipped(self, tmp_path: Path):
        """With nothing configured or discoverable, a check is skipped, not failed."""
        outcome = Validator(tmp_path, _config(run_tests=True)).run()

        assert outcome.success
        assert outcome.checks[0].skipped

    def test_unknown_executable_fails(self, tmp_path: Path):
        outcome = Validator(tmp_path, _config(custom_commands=["safefix-no-such-binary --x"])).run()

        assert not outcome.success
        assert "Could not run command" in outcome.checks[0].error

    def test_timeout_is_a_failure(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        def fake_run(*args, **kwargs):
            raise subprocess.TimeoutExpired(cmd=args[0], timeout=kwargs["timeout"], output=b"partial")

        monkeypatch.setattr(subprocess, "run", fake_run)
        outcome = Validator(tmp_path, _config(custom_commands=[PASS], timeout_seconds=2)).run()

        check = outcome.checks[0]
        assert not check.passed
        assert check.error == "Timed out after 2s"
        assert check.output == "partial"

    def test_output_truncated(self, tmp_path: Path):
        noisy = f"{PYTHON} -c \"print('x' * 5000)\""
        outcome = Validator(tmp_path, _config(custom_commands=[noisy], max_output_chars=100)).run()

        output = outcome.checks[0].output
        assert output.startswith("x" * 100)
        assert "more characters" in output
        assert len(output) < 200


class TestDiscovery:
    def test_reads_package_json_scripts(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(json.dumps({
            "scripts": {"test": "jest", "typecheck": "tsc --noEmit", "lint": "eslint ."},
        }))

        found = Validator(tmp_path).discover_commands()

        assert found == {"test": "npm test", "type_check": "npm run typecheck", "lint": "npm run lint"}

    def test_typescript_dependency_implies_tsc(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(json.dumps({
            "scripts": {},
            "devDependencies": {"typescript": "^5.0.0"},
        }))

        assert Validator(tmp_path).discover_commands() == {"type_check": "npx tsc --noEmit"}

    def test_configured_command_wins(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(json.dumps({"scripts": {"test": "jest"}}))
        validator = Validator(tmp_path, _config(run_tests=True, test_command="make test"))

        assert [c.command for c in validator.plan()] == ["make test"]

    def test_broken_package_json(self, tmp_path: Path):
        (tmp_path / "package.json").write_text("{not json")
        assert Validator(tmp_path).discover_commands() == {}

    def test_disabled_suite(self):
        assert not _config().enabled
        assert _config(custom_commands=["x"]).enabled
