"""Post-fix validation: tests, type check, linter and custom commands."""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from safefix.core.config import ValidationConfig
from safefix.core.models import CheckOutcome, ValidationOutcome

logger = logging.getLogger("safefix.validation")


@dataclass
class PlannedCheck:
    name: str
    command: str | None


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... ({len(text) - limit} more characters)"


class Validator:
    """Runs the configured checks one after the other.

    Every check runs even when an earlier one failed, so the outcome lists
    the full picture.
    """

    def __init__(self, project_root: Path, config: ValidationConfig | None = None):
        self.project_root = project_root
        self.config = config or ValidationConfig()

    def discover_commands(self) -> dict[str, str]:
        """Commands found in package.json scripts, keyed by check kind."""
        manifest = self.project_root / "package.json"
        if not manifest.exists():
            return {}
        try:
            package = json.loads(manifest.read_text())
        except (OSError, ValueError) as exc:
            logger.debug("Could not read %s: %s", manifest, exc)
            return {}

        scripts = package.get("scripts") or {}
        found: dict[str, str] = {}
        if "test" in scripts:
            found["test"] = "npm test"
        for script in ("type-check", "typecheck", "tsc"):
            if script in scripts:
                found["type_check"] = f"npm run {script}"
                break
        else:
            if "typescript" in (package.get("devDependencies") or {}):
                found["type_check"] = "npx tsc --noEmit"
        if "lint" in scripts:
            found["lint"] = "npm run lint"
        return found

    def plan(self) -> list[PlannedCheck]:
        cfg = self.config
        discovered: dict[str, str] | None = None

        def pick(configured: str | None, kind: str) -> str | None:
            nonlocal discovered
            if configured:
                return configured
            if discovered is None:
                discovered = self.discover_commands()
            return discovered.get(kind)

        checks = []
        if cfg.run_tests:
            checks.append(PlannedCheck("Tests", pick(cfg.test_command, "test")))
        if cfg.run_type_check:
            checks.append(PlannedCheck("Type Check", pick(cfg.type_check_command, "type_check")))
        if cfg.run_linter:
            checks.append(PlannedCheck("Linter", pick(cfg.lint_command, "lint")))
        for command in cfg.custom_commands:
            checks.append(PlannedCheck(f"Custom: {command}", command))
        return checks

    def run(self) -> ValidationOutcome:
        started = time.monotonic()
        outcome = ValidationOutcome()
        for check in self.plan():
            if not check.command:
                logger.info("Skipping %s: no command configured or discovered", check.name)
                outcome.checks.append(CheckOutcome(name=check.name, command=None, passed=True, skipped=True))
                continue
            outcome.checks.append(self._run_check(check.name, check.command))
        outcome.duration = time.monotonic() - started
        return outcome

    def _run_check(self, name: str, command: str) -> CheckOutcome:
        logger.info("Running %s: %s", name, command)
        limit = self.config.max_output_chars
        started = time.monotonic()
        try:
            result = subprocess.run(
                shlex.split(command),
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                cwd=str(self.project_root),
                timeout=self.config.timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            output = exc.stdout or ""
            if isinstance(output, bytes):
                output = output.decode("utf-8", errors="replace")
            logger.error("%s timed out after %ss", name, self.config.timeout_seconds)
            return CheckOutcome(
                name=name,
                command=command,
                passed=False,
                output=_truncate(output, limit),
                error=f"Timed out after {self.config.timeout_seconds}s",
                duration=time.monotonic() - started,
            )
        except (OSError, ValueError) as exc:
            logger.error("%s could not start: %s", name, exc)
            return CheckOutcome(
                name=name,
                command=command,
                passed=False,
                error=f"Could not run command: {exc}",
                duration=time.monotonic() - started,
            )

        output = (result.stdout or "") + (result.stderr or "")
        passed = result.returncode == 0
        if passed:
            logger.info("%s passed", name)
        else:
            logger.error("%s failed with exit code %d", name, result.returncode)
        return CheckOutcome(
            name=name,
            command=command,
            passed=passed,
            output=_truncate(output, limit),
            error="" if passed else f"Exit code {result.returncode}",
            duration=time.monotonic() - started,
        )
