"""JavaScript parsing helpers shared by the JS-aware providers.

Esprima only understands plain JavaScript (plus JSX), so TypeScript and
newer syntax raise here and callers fall back to a line-based regex scan.
"""

from __future__ import annotations

from typing import Iterator

import esprima

JS_SUFFIXES = (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx")

# Statement containers: removing a child leaves valid code behind.
BLOCK_TYPES = {"Program", "BlockStatement", "SwitchCase", "StaticBlock"}


class JsParseError(Exception):
    pass


def parse_js(source: str):
    """Parse as a module, then as a script; raise JsParseError if both fail."""
    try:
        return esprima.parseModule(source, loc=True, tolerant=True, jsx=True)
    except Exception as module_exc:
        try:
            return esprima.parseScript(source, loc=True, tolerant=True, jsx=True)
        except Exception:
            raise JsParseError(str(module_exc)) from module_exc


def _is_node(value) -> bool:
    return isinstance(getattr(value, "type", None), str)


def walk(node, ancestors: tuple = ()) -> Iterator[tuple[object, tuple]]:
    """Yield every node together with its chain of ancestors."""
    yield node, ancestors
    for key, value in vars(node).items():
        if key in ("loc", "range"):
            continue
        children = value if isinstance(value, list) else [value]
        for child in children:
            if _is_node(child):
                yield from walk(child, ancestors + (node,))


def node_text(lines: list[str], node) -> str:
    """Source text of a node; only the first line for multi-line nodes."""
    start, end = node.loc.start, node.loc.end
    line = lines[start.line - 1]
    if start.line == end.line:
        return line[start.column : end.column]
    return line[start.column :]


def member_name(callee) -> str | None:
    """``console.log`` for a non-computed ``console.log`` member callee."""
    if getattr(callee, "type", None) != "MemberExpression" or callee.computed:
        return None
    obj, prop = callee.object, callee.property
    if getattr(obj, "type", None) != "Identifier" or getattr(prop, "type", None) != "Identifier":
        return None
    return f"{obj.name}.{prop.name}"


def call_confidence(node, ancestors: tuple) -> float:
    """Confidence that removing this call expression is harmless."""
    confidence = 0.95
    if all(getattr(arg, "type", None) == "Literal" for arg in node.arguments):
        confidence = 0.99

    parent = ancestors[-1] if ancestors else None
    parent_type = getattr(parent, "type", None)
    if parent_type == "SequenceExpression":
        confidence *= 0.8
    elif parent_type != "ExpressionStatement":
        # The call's value is used somewhere.
        confidence *= 0.7
    elif len(ancestors) >= 2 and getattr(ancestors[-2], "type", None) not in BLOCK_TYPES:
        # e.g. `if (x) console.log(x);` where the call is the whole body.
        confidence *= 0.7

    if any(getattr(a, "type", None) == "ConditionalExpression" for a in ancestors):
        confidence *= 0.9
    return confidence


def balanced_call_end(line: str, open_index: int) -> int | None:
    """Index just past the ``)`` matching ``line[open_index]``, if on this line."""
    depth = 0
    quote = ""
    escaped = False
    for i in range(open_index, len(line)):
        ch = line[i]
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = ""
            continue
        if ch in "'\"`":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def mask_literals(source: str) -> str:
    """Blank out string, template and comment contents, keeping offsets and newlines.

    Line-based scans run over the masked text so that ``"console.log(x)"``
    inside a string or comment is never mistaken for a call.
    """
    out = list(source)
    i, n = 0, len(source)
    while i < n:
        ch = source[i]
        if ch in "'\"`":
            i += 1
            while i < n:
                c = source[i]
                if c == "\\" and i + 1 < n:
                    out[i] = " "
                    if source[i + 1] != "\n":
                        out[i + 1] = " "
                    i += 2
                    continue
                if c == ch:
                    break
                if c == "\n":
                    # Only template literals span lines.
                    if ch != "`":
                        break
                else:
                    out[i] = " "
                i += 1
            i += 1
        elif source.startswith("//", i):
            while i < n and source[i] != "\n":
                out[i] = " "
                i += 1
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            end = n if end == -1 else end + 2
            for j in range(i, end):
                if source[j] != "\n":
                    out[j] = " "
            i = end
        else:
            i += 1
    return "".join(out)
