"""Turning fix candidates into line edits, and applying edits to text.

Nothing in this module touches the disk except ``read_source`` and
``write_source``, which keep the file's bytes (line endings included) intact.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Sequence

from safefix.core.errors import StaleEditError
from safefix.core.models import Edit, EditOperation, FixCandidate

logger = logging.getLogger("safefix.fix")

# Inserts first so an insert after line N never shifts a remove of line N.
_OPERATION_ORDER = {
    EditOperation.INSERT: 0,
    EditOperation.REPLACE: 1,
    EditOperation.REMOVE: 2,
}


def read_source(path: Path) -> str:
    return path.read_bytes().decode("utf-8")


def write_source(path: Path, content: str) -> None:
    path.write_bytes(content.encode("utf-8"))


def sort_for_apply(edits: Iterable[Edit]) -> list[Edit]:
    """Strictly descending line order, so earlier indices stay valid."""
    return sorted(edits, key=lambda e: (-e.line, _OPERATION_ORDER[e.operation]))


def apply_edits(source: str, edits: Sequence[Edit]) -> str:
    """Apply one file's edits to ``source`` and return the new text.

    Raises StaleEditError when an edit's recorded text no longer matches the
    line it targets.
    """
    lines = source.split("\n")
    for edit in sort_for_apply(edits):
        if edit.operation is EditOperation.INSERT:
            if not 0 <= edit.line <= len(lines):
                raise StaleEditError(f"{edit.file}:{edit.line}: insert position out of range")
            lines.insert(edit.line, edit.new_text or "")
            continue

        index = edit.line - 1
        if index < 0 or index >= len(lines) or lines[index] != edit.old_text:
            raise StaleEditError(
                f"{edit.file}:{edit.line}: source has changed since it was analyzed",
                hint="Re-run the fix to pick up the current file contents.",
            )
        if edit.operation is EditOperation.REMOVE:
            del lines[index]
        else:
            lines[index] = edit.new_text if edit.new_text is not None else ""
    return "\n".join(lines)


def _excise(line: str, start: int, end: int) -> str:
    """Cut ``line[start:end]`` and tidy the whitespace around the gap."""
    eol = "\r" if line.endswith("\r") else ""
    body = line[: len(line) - len(eol)]
    before, after = body[:start], body[end:]
    if not before.strip():
        return before + after.lstrip() + eol
    if not after.strip():
        return before.rstrip() + eol
    return before.rstrip() + "  " + after.lstrip() + eol


class ChangeBuilder:
    """Converts one category's candidates into concrete line edits.

    ``statement_endings`` decide whether a statement ends on its own line;
    when it does not and the candidate carries no end line, the builder scans
    forward to the first line containing ``closing_token``.
    """

    def __init__(
        self,
        category: str,
        describe: Callable[[FixCandidate, str], str],
        statement_endings: tuple[str, ...] = (");", ")"),
        closing_token: str = ");",
        terminator: str = ";",
    ):
        self.category = category
        self.describe = describe
        self.statement_endings = statement_endings
        self.closing_token = closing_token
        self.terminator = terminator

    def build(self, file_path: Path, source: str, candidates: Sequence[FixCandidate]) -> list[Edit]:
        lines = source.split("\n")
        covered: set[int] = set()
        edits: list[Edit] = []
        single_line: dict[int, list[FixCandidate]] = {}

        for cand in sorted(candidates, key=lambda c: (c.line, c.column)):
            index = cand.line - 1
            if index < 0 or index >= len(lines) or index in covered:
                continue

            end = self._statement_end(lines, index, cand)
            if end == index:
                single_line.setdefault(index, []).append(cand)
                continue

            span = range(index, end + 1)
            if any(i in covered or i in single_line for i in span):
                continue
            if not self._span_stands_alone(lines, cand, end):
                logger.debug(
                    "%s:%d: multi-line statement shares its lines with other code, skipped",
                    file_path, cand.line,
                )
                continue

            covered.update(span)
            for i in span:
                edits.append(Edit(
                    file=file_path,
                    line=i + 1,
                    operation=EditOperation.REMOVE,
                    old_text=lines[i],
                    description=self.describe(cand, "multiline"),
                    category=self.category,
                    group=cand.line,
                ))

        for index, line_candidates in single_line.items():
            if index in covered:
                continue
            edit = self._single_line_edit(file_path, lines[index], index, line_candidates)
            if edit is not None:
                covered.add(index)
                edits.append(edit)

        return sorted(edits, key=lambda e: e.line)

    def _statement_end(self, lines: list[str], index: int, cand: FixCandidate) -> int:
        if cand.end_line is not None:
            return min(max(cand.end_line - 1, index), len(lines) - 1)
        stripped = lines[index].strip()
        if stripped.endswith(self.statement_endings):
            return index
        for i in range(index + 1, len(lines)):
            if self.closing_token in lines[i]:
                return i
        return index

    def _span_stands_alone(self, lines: list[str], cand: FixCandidate, end: int) -> bool:
        first = lines[cand.line - 1]
        if first[: cand.column].strip():
            return False
        if cand.end_line is None or cand.end_column is None:
            return True
        tail = lines[end][cand.end_column:].strip()
        return tail in ("", self.terminator)

    def _fragment_span(self, line: str, cand: FixCandidate) -> tuple[int, int] | None:
        start = cand.column
        if line[start : start + len(cand.code)] != cand.code:
            start = line.find(cand.code)
            if start < 0:
                return None
        end = start + len(cand.code)
        rest = line[end:]
        gap = len(rest) - len(rest.lstrip(" \t"))
        if self.terminator and rest[gap : gap + len(self.terminator)] == self.terminator:
            end += gap + len(self.terminator)
        return start, end

    def _single_line_edit(
        self,
        file_path: Path,
        line: str,
        index: int,
        candidates: list[FixCandidate],
    ) -> Edit | None:
        spans: list[tuple[int, int, FixCandidate]] = []
        for cand in candidates:
            span = self._fragment_span(line, cand)
            if span is None:
                continue
            # Drop candidates nested inside one already taken.
            if spans and span[0] < spans[-1][1]:
                continue
            spans.append((span[0], span[1], cand))
        if not spans:
            return None

        new_line = line
        for start, end, _ in reversed(spans):
            new_line = _excise(new_line, start, end)

        first = spans[0][2]
        if not new_line.strip():
            return Edit(
                file=file_path,
                line=index + 1,
                operation=EditOperation.REMOVE,
                old_text=line,
                description=self.describe(first, "line"),
                category=self.category,
                group=index + 1,
            )
        if new_line == line:
            return None
        return Edit(
            file=file_path,
            line=index + 1,
            operation=EditOperation.REPLACE,
            old_text=line,
            new_text=new_line,
            description=self.describe(first, "fragment"),
            category=self.category,
            group=index + 1,
        )
