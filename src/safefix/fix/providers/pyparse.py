"""Python AST helpers for the Python-aware providers."""

from __future__ import annotations

import ast

PY_SUFFIXES = (".py",)


def parent_map(tree: ast.AST) -> dict[ast.AST, ast.AST]:
    parents: dict[ast.AST, ast.AST] = {}
    for node in ast.walk(tree):
        for child in ast.iter_child_nodes(node):
            parents[child] = node
    return parents


def ancestors_of(node: ast.AST, parents: dict[ast.AST, ast.AST]) -> list[ast.AST]:
    chain = []
    while node in parents:
        node = parents[node]
        chain.append(node)
    return chain


def char_column(line: str, byte_offset: int) -> int:
    """ast offsets count UTF-8 bytes; convert to a str index."""
    return len(line.encode("utf-8")[:byte_offset].decode("utf-8", errors="ignore"))


def dotted_name(func: ast.expr) -> str | None:
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name):
        return f"{func.value.id}.{func.attr}"
    return None


def is_sole_statement(stmt: ast.stmt, parent: ast.AST | None) -> bool:
    """True when removing ``stmt`` would leave an empty suite."""
    if parent is None or isinstance(parent, ast.Module):
        return False
    for _, value in ast.iter_fields(parent):
        if isinstance(value, list) and stmt in value:
            return len(value) == 1
    return False


def call_confidence(call: ast.Call, parents: dict[ast.AST, ast.AST], base: float = 0.95) -> float:
    confidence = base
    if base < 0.99 and all(isinstance(arg, ast.Constant) for arg in call.args) and not call.keywords:
        confidence = 0.99

    parent = parents.get(call)
    if isinstance(parent, (ast.Tuple, ast.List)):
        confidence *= 0.8
    elif not isinstance(parent, ast.Expr):
        confidence *= 0.7
    elif is_sole_statement(parent, parents.get(parent)):
        confidence *= 0.7

    if any(isinstance(a, ast.IfExp) for a in ancestors_of(call, parents)):
        confidence *= 0.9
    return confidence
