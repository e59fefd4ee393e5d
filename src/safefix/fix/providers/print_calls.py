"""Bare ``print(...)`` calls left behind in Python modules."""

from __future__ import annotations

import ast
import logging
import re
from pathlib import Path

from safefix.core.models import FixCandidate
from safefix.fix.changes import ChangeBuilder
from safefix.fix.providers.base import FixProvider
from safefix.fix.providers.jsparse import balanced_call_end
from safefix.fix.providers.pyparse import PY_SUFFIXES, call_confidence, char_column, parent_map

logger = logging.getLogger("safefix.fix")

REGEX_CONFIDENCE = 0.9


class PrintCallProvider(FixProvider):
    """Disabled by default: plenty of scripts print on purpose."""

    category = "print-calls"
    config_key = "print_calls"
    label = "print()"
    suffixes = PY_SUFFIXES

    _call_pattern = re.compile(r"(?<![\w.])print\s*\(")

    def make_builder(self) -> ChangeBuilder:
        return ChangeBuilder(
            self.category,
            self.describe,
            statement_endings=(")",),
            closing_token=")",
        )

    def detect(self, file_path: Path, source: str) -> list[FixCandidate]:
        try:
            tree = ast.parse(source, filename=str(file_path))
        except (SyntaxError, ValueError) as exc:
            logger.debug("%s: parse failed (%s), falling back to regex scan", file_path, exc)
            return self._detect_with_regex(file_path, source)

        lines = source.split("\n")
        parents = parent_map(tree)
        candidates = []
        for node in ast.walk(tree):
            if not (isinstance(node, ast.Call) and isinstance(node.func, ast.Name)):
                continue
            if node.func.id != "print":
                continue
            # print(..., file=sys.stderr) is deliberate output.
            if any(kw.arg == "file" for kw in node.keywords):
                continue
            line = lines[node.lineno - 1]
            end_line = node.end_lineno or node.lineno
            candidates.append(FixCandidate(
                file=file_path,
                line=node.lineno,
                column=char_column(line, node.col_offset),
                category=self.category,
                code=ast.get_source_segment(source, node) or "",
                confidence=call_confidence(node, parents),
                symbol="print()",
                end_line=end_line,
                end_column=char_column(lines[end_line - 1], node.end_col_offset or 0),
            ))
        return candidates

    def _detect_with_regex(self, file_path: Path, source: str) -> list[FixCandidate]:
        candidates = []
        for number, line in enumerate(source.split("\n"), start=1):
            for match in self._call_pattern.finditer(line):
                if "file=" in line[match.end():]:
                    continue
                end = balanced_call_end(line, match.end() - 1)
                candidates.append(FixCandidate(
                    file=file_path,
                    line=number,
                    column=match.start(),
                    category=self.category,
                    code=line[match.start() : end] if end else match.group(0),
                    confidence=REGEX_CONFIDENCE,
                    symbol="print()",
                    end_line=number if end else None,
                    end_column=end,
                ))
        return candidates
