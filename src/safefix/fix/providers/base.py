"""Base class for all fix providers."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from safefix.core.config import CategoryConfig, WhitelistConfig, matches_any_glob
from safefix.core.models import Edit, FixCandidate
from safefix.fix.changes import ChangeBuilder

DEFAULT_MIN_CONFIDENCE = 0.9

TEST_DIR_NAMES = {"test", "tests", "__tests__", "spec", "__mocks__"}
TEST_FILE_PATTERNS = [
    re.compile(r"\.(test|spec)\.[cm]?[jt]sx?$"),
    re.compile(r"^test_.*\.py$"),
    re.compile(r".*_test\.py$"),
    re.compile(r"^conftest\.py$"),
]


def is_test_file(file_path: Path, root: Path | None = None) -> bool:
    """Debug output in test files is assumed to be intentional."""
    if any(p.search(file_path.name) for p in TEST_FILE_PATTERNS):
        return True
    parts = file_path.parts
    if root is not None:
        try:
            parts = file_path.resolve().relative_to(root.resolve()).parts
        except ValueError:
            pass
    return any(part in TEST_DIR_NAMES for part in parts[:-1])


class FixProvider(ABC):
    """One fix category: finds candidates in a file and builds their edits."""

    category: str = ""
    config_key: str = ""
    label: str = ""
    suffixes: tuple[str, ...] = ()

    def __init__(
        self,
        whitelist: WhitelistConfig | None = None,
        settings: CategoryConfig | None = None,
        project_root: Path | None = None,
    ):
        self.whitelist = whitelist
        self.settings = settings or CategoryConfig()
        self.project_root = project_root
        self._preserve_patterns = [
            re.compile(p) for p in (whitelist.patterns if whitelist else [])
        ]
        self.builder = self.make_builder()

    @property
    def min_confidence(self) -> float:
        return self.settings.min_confidence if self.settings else DEFAULT_MIN_CONFIDENCE

    def applies_to(self, file_path: Path) -> bool:
        if file_path.suffix.lower() not in self.suffixes:
            return False
        if self.settings.exclude_patterns and matches_any_glob(
            file_path, self.settings.exclude_patterns, self.project_root
        ):
            return False
        return True

    def find_candidates(self, file_path: Path, source: str) -> list[FixCandidate]:
        """Detect candidates in one file, honouring test-file and whitelist rules."""
        if is_test_file(file_path, self.project_root):
            return []

        lines = source.split("\n")
        kept = []
        for cand in self.detect(file_path, source):
            if cand.confidence < self.min_confidence:
                continue
            current = lines[cand.line - 1] if cand.line - 1 < len(lines) else ""
            previous = lines[cand.line - 2] if cand.line > 1 else ""
            if self.should_preserve(current) or self.should_preserve(previous):
                continue
            kept.append(cand)
        return kept

    def build_edits(self, file_path: Path, source: str, candidates: Sequence[FixCandidate]) -> list[Edit]:
        return self.builder.build(file_path, source, candidates)

    def should_preserve(self, line: str) -> bool:
        """A marker comment or whitelisted pattern on the line keeps it."""
        if not line:
            return False
        markers = self.whitelist.comments if self.whitelist else WhitelistConfig().comments
        for marker in markers:
            if marker in line:
                return True
            # Markers such as "eslint-disable.*console" are regexes.
            if any(ch in marker for ch in ".*[]?") and _safe_search(marker, line):
                return True
        return any(p.search(line) for p in self._preserve_patterns)

    @abstractmethod
    def detect(self, file_path: Path, source: str) -> list[FixCandidate]:
        """Return every candidate in ``source`` with its confidence."""
        ...

    @abstractmethod
    def make_builder(self) -> ChangeBuilder:
        ...

    def describe(self, cand: FixCandidate, shape: str) -> str:
        symbol = cand.symbol or self.label
        if shape == "multiline":
            return f"Remove multi-line {symbol} statement"
        if shape == "fragment":
            return f"Remove {symbol} from line"
        return f"Remove {symbol} statement"


def _safe_search(pattern: str, line: str) -> bool:
    try:
        return re.search(pattern, line) is not None
    except re.error:
        return False
