"""Configuration management for safefix (safefix.toml parsing + defaults)."""

from __future__ import annotations

import re
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    try:
        import tomli as tomllib  # type: ignore[no-redef]
    except ImportError:
        tomllib = None  # type: ignore[assignment]

CONFIG_FILENAME = "safefix.toml"


@dataclass
class SafetyConfig:
    dry_run: bool = False
    auto_confirm: bool = False
    max_files_per_run: int = 10
    require_git_clean: bool = True
    require_backup: bool = True
    backup_root: Path | None = None
    backup_max_age_hours: float = 24
    branch_prefix: str = "safefix"
    auto_commit: bool | None = None


@dataclass
class ValidationConfig:
    run_tests: bool = True
    run_type_check: bool = True
    run_linter: bool = True
    test_command: str | None = None
    type_check_command: str | None = None
    lint_command: str | None = None
    custom_commands: list[str] = field(default_factory=list)
    timeout_seconds: float = 60
    max_output_chars: int = 1000
    check_baseline: bool = True

    @property
    def enabled(self) -> bool:
        return self.run_tests or self.run_type_check or self.run_linter or bool(self.custom_commands)


@dataclass
class CategoryConfig:
    enabled: bool = True
    min_confidence: float = 0.9
    exclude_patterns: list[str] = field(default_factory=list)


@dataclass
class FixTypesConfig:
    console_logs: CategoryConfig = field(
        default_factory=lambda: CategoryConfig(
            enabled=True,
            min_confidence=0.9,
            exclude_patterns=["**/debug/**", "**/scripts/**"],
        )
    )
    debugger_statements: CategoryConfig = field(
        default_factory=lambda: CategoryConfig(enabled=True, min_confidence=0.95)
    )
    print_calls: CategoryConfig = field(
        default_factory=lambda: CategoryConfig(enabled=False, min_confidence=0.95)
    )

    def get(self, key: str) -> CategoryConfig | None:
        value = getattr(self, key, None)
        return value if isinstance(value, CategoryConfig) else None


@dataclass
class WhitelistConfig:
    """Paths and lines that fixes must never touch."""

    files: list[str] = field(
        default_factory=lambda: [
            "**/vendor/**",
            "**/generated/**",
            "**/node_modules/**",
            "**/*.min.js",
            "**/dist/**",
            "**/build/**",
        ]
    )
    patterns: list[str] = field(
        default_factory=lambda: [
            "_unused.*",
            "DEBUG_.*",
            "LEGACY_.*",
        ]
    )
    comments: list[str] = field(
        default_factory=lambda: [
            "@safefix-ignore",
            "@preserve",
            "eslint-disable.*console",
            "TODO: keep",
        ]
    )


@dataclass
class SafeFixConfig:
    """Complete safefix configuration."""

    exclude: list[str] = field(
        default_factory=lambda: [
            "node_modules/",
            ".git/",
            "venv/",
            ".venv/",
            "__pycache__/",
            "dist/",
            "build/",
        ]
    )
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    fixes: FixTypesConfig = field(default_factory=FixTypesConfig)
    whitelist: WhitelistConfig = field(default_factory=WhitelistConfig)


def load_config(project_path: Path | None = None) -> SafeFixConfig:
    """Load configuration from safefix.toml if present, otherwise return defaults."""
    config = SafeFixConfig()

    if project_path is None:
        project_path = Path.cwd()

    config_file = project_path / CONFIG_FILENAME
    if not config_file.exists():
        return config

    if tomllib is None:
        return config

    with open(config_file, "rb") as f:
        data = tomllib.load(f)

    if "general" in data:
        gen = data["general"]
        if "exclude" in gen:
            config.exclude = gen["exclude"]

    if "safety" in data:
        s = data["safety"]
        for attr in (
            "dry_run",
            "auto_confirm",
            "max_files_per_run",
            "require_git_clean",
            "require_backup",
            "backup_max_age_hours",
            "branch_prefix",
            "auto_commit",
        ):
            if attr in s:
                setattr(config.safety, attr, s[attr])
        if "backup_root" in s:
            config.safety.backup_root = Path(s["backup_root"]).expanduser()

    if "validation" in data:
        v = data["validation"]
        for attr in (
            "run_tests",
            "run_type_check",
            "run_linter",
            "test_command",
            "type_check_command",
            "lint_command",
            "custom_commands",
            "timeout_seconds",
            "max_output_chars",
            "check_baseline",
        ):
            if attr in v:
                setattr(config.validation, attr, v[attr])

    if "fixes" in data:
        for key, section in data["fixes"].items():
            category = config.fixes.get(key)
            if category is None or not isinstance(section, dict):
                continue
            for attr in ("enabled", "min_confidence", "exclude_patterns"):
                if attr in section:
                    setattr(category, attr, section[attr])

    # Whitelist entries extend the defaults rather than replacing them.
    if "whitelist" in data:
        w = data["whitelist"]
        config.whitelist.files.extend(w.get("files", []))
        config.whitelist.patterns.extend(w.get("patterns", []))
        config.whitelist.comments.extend(w.get("comments", []))

    return config


def default_backup_root() -> Path:
    """Backups live outside the project so they never dirty the working tree."""
    return Path(tempfile.gettempdir()) / "safefix-backups"


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a ``**``-aware glob into an anchored regex."""
    out = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out))


def relative_posix(file_path: Path, root: Path | None) -> str:
    if root is not None:
        try:
            return file_path.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            pass
    return file_path.as_posix()


def matches_any_glob(file_path: Path, patterns: list[str], root: Path | None = None) -> bool:
    rel = relative_posix(file_path, root)
    return any(glob_to_regex(p).fullmatch(rel) for p in patterns)


def should_skip_file(file_path: Path, whitelist: WhitelistConfig, root: Path | None = None) -> bool:
    """True when the file matches a whitelist glob and must never be fixed."""
    return matches_any_glob(file_path, whitelist.files, root)
