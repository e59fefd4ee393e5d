"""console.log / console.debug / console.info removal."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from safefix.core.models import FixCandidate
from safefix.fix.changes import ChangeBuilder
from safefix.fix.providers.base import FixProvider
from safefix.fix.providers.jsparse import (
    JS_SUFFIXES,
    JsParseError,
    balanced_call_end,
    call_confidence,
    mask_literals,
    member_name,
    node_text,
    parse_js,
    walk,
)

logger = logging.getLogger("safefix.fix")

CONSOLE_METHODS = ("log", "debug", "info")
REGEX_CONFIDENCE = 0.9


class ConsoleLogProvider(FixProvider):
    """Finds ``console.log``-style debug output in JavaScript and TypeScript."""

    category = "console-logs"
    config_key = "console_logs"
    label = "console.log"
    suffixes = JS_SUFFIXES

    _call_pattern = re.compile(r"(?<![\w$.])console\.(log|debug|info)\s*\(")

    def make_builder(self) -> ChangeBuilder:
        return ChangeBuilder(self.category, self.describe)

    def detect(self, file_path: Path, source: str) -> list[FixCandidate]:
        try:
            tree = parse_js(source)
        except JsParseError as exc:
            logger.debug("%s: parse failed (%s), falling back to regex scan", file_path, exc)
            return self._detect_with_regex(file_path, source)

        lines = source.split("\n")
        candidates = []
        for node, ancestors in walk(tree):
            if node.type != "CallExpression":
                continue
            name = member_name(node.callee)
            if name is None or name.split(".")[0] != "console":
                continue
            if name.split(".")[1] not in CONSOLE_METHODS:
                continue
            candidates.append(FixCandidate(
                file=file_path,
                line=node.loc.start.line,
                column=node.loc.start.column,
                category=self.category,
                code=node_text(lines, node),
                confidence=call_confidence(node, ancestors),
                symbol=name,
                end_line=node.loc.end.line,
                end_column=node.loc.end.column,
            ))
        return candidates

    def _detect_with_regex(self, file_path: Path, source: str) -> list[FixCandidate]:
        candidates = []
        lines = source.split("\n")
        for number, masked in enumerate(mask_literals(source).split("\n"), start=1):
            line = lines[number - 1]
            for match in self._call_pattern.finditer(masked):
                end = balanced_call_end(masked, match.end() - 1)
                candidates.append(FixCandidate(
                    file=file_path,
                    line=number,
                    column=match.start(),
                    category=self.category,
                    code=line[match.start() : end] if end else match.group(0),
                    confidence=REGEX_CONFIDENCE,
                    symbol=f"console.{match.group(1)}",
                    end_line=number if end else None,
                    end_column=end,
                ))
        return candidates
