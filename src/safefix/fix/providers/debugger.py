"""Leftover debugger statements: ``debugger;``, ``breakpoint()``, ``pdb.set_trace()``."""

from __future__ import annotations

import ast
import logging
import re
from pathlib import Path

from safefix.core.models import FixCandidate
from safefix.fix.changes import ChangeBuilder
from safefix.fix.providers.base import FixProvider
from safefix.fix.providers.jsparse import BLOCK_TYPES, JS_SUFFIXES, JsParseError, mask_literals, parse_js, walk
from safefix.fix.providers.pyparse import (
    PY_SUFFIXES,
    char_column,
    dotted_name,
    is_sole_statement,
    parent_map,
)

logger = logging.getLogger("safefix.fix")

PY_DEBUGGER_CALLS = {
    "breakpoint",
    "pdb.set_trace",
    "ipdb.set_trace",
    "pudb.set_trace",
}


class DebuggerStatementProvider(FixProvider):
    category = "debugger-statements"
    config_key = "debugger_statements"
    label = "debugger"
    suffixes = JS_SUFFIXES + PY_SUFFIXES

    _js_line = re.compile(r"^\s*debugger\s*;?\s*$")
    _py_line = re.compile(r"^\s*(breakpoint|i?pdb\.set_trace|pudb\.set_trace)\(\)\s*$")

    def make_builder(self) -> ChangeBuilder:
        return ChangeBuilder(self.category, self.describe)

    def detect(self, file_path: Path, source: str) -> list[FixCandidate]:
        if file_path.suffix.lower() in PY_SUFFIXES:
            return self._detect_python(file_path, source)
        return self._detect_js(file_path, source)

    def _detect_js(self, file_path: Path, source: str) -> list[FixCandidate]:
        try:
            tree = parse_js(source)
        except JsParseError as exc:
            logger.debug("%s: parse failed (%s), falling back to regex scan", file_path, exc)
            return self._detect_with_regex(file_path, source, self._js_line, mask_literals(source))

        lines = source.split("\n")
        candidates = []
        for node, ancestors in walk(tree):
            if node.type != "DebuggerStatement":
                continue
            start, end = node.loc.start, node.loc.end
            parent_type = getattr(ancestors[-1], "type", None) if ancestors else None
            candidates.append(FixCandidate(
                file=file_path,
                line=start.line,
                column=start.column,
                category=self.category,
                code=lines[start.line - 1][start.column : end.column].rstrip(";"),
                confidence=1.0 if parent_type in BLOCK_TYPES else 0.7,
                symbol="debugger",
                end_line=end.line,
                end_column=end.column,
            ))
        return candidates

    def _detect_python(self, file_path: Path, source: str) -> list[FixCandidate]:
        try:
            tree = ast.parse(source, filename=str(file_path))
        except (SyntaxError, ValueError) as exc:
            logger.debug("%s: parse failed (%s), falling back to regex scan", file_path, exc)
            return self._detect_with_regex(file_path, source, self._py_line)

        lines = source.split("\n")
        parents = parent_map(tree)
        candidates = []
        for node in ast.walk(tree):
            if not isinstance(node, ast.Call):
                continue
            name = dotted_name(node.func)
            if name not in PY_DEBUGGER_CALLS:
                continue
            parent = parents.get(node)
            confidence = 1.0
            if not isinstance(parent, ast.Expr) or is_sole_statement(parent, parents.get(parent)):
                confidence = 0.7
            line = lines[node.lineno - 1]
            end_line = node.end_lineno or node.lineno
            candidates.append(FixCandidate(
                file=file_path,
                line=node.lineno,
                column=char_column(line, node.col_offset),
                category=self.category,
                code=ast.get_source_segment(source, node) or "",
                confidence=confidence,
                symbol=f"{name}()",
                end_line=end_line,
                end_column=char_column(lines[end_line - 1], node.end_col_offset or 0),
            ))
        return candidates

    def _detect_with_regex(
        self, file_path: Path, source: str, pattern: re.Pattern[str], masked: str | None = None
    ) -> list[FixCandidate]:
        candidates = []
        scanned = (masked if masked is not None else source).split("\n")
        for number, line in enumerate(source.split("\n"), start=1):
            # Lines inside template literals or block comments mask to blanks.
            if not pattern.match(line) or not pattern.match(scanned[number - 1]):
                continue
            code = line.strip().rstrip(";").rstrip()
            candidates.append(FixCandidate(
                file=file_path,
                line=number,
                column=line.index(code),
                category=self.category,
                code=code,
                confidence=0.97,
                symbol="debugger" if code == "debugger" else code,
                end_line=number,
                end_column=line.index(code) + len(code),
            ))
        return candidates
