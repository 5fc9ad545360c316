from __future__ import annotations

import ast

from scenekit.engine.models import SandboxExecutionError


FORBIDDEN_NAMES = {
    "open",
    "exec",
    "eval",
    "compile",
    "getattr",
    "setattr",
    "delattr",
    "globals",
    "locals",
    "vars",
    "input",
    "breakpoint",
    "help",
    "exit",
    "quit",
    "memoryview",
    "type",
    "object",
}

# Attributes that lead from plain data back to frames, code or globals.
FORBIDDEN_ATTRIBUTES = {
    "format",
    "format_map",
    "gi_frame",
    "gi_code",
    "cr_frame",
    "cr_code",
    "ag_frame",
    "ag_code",
    "f_globals",
    "f_locals",
    "f_builtins",
    "f_back",
    "f_code",
    "tb_frame",
    "tb_next",
    "mro",
}

_FORBIDDEN_NODES = (
    ast.Import,
    ast.ImportFrom,
    ast.Global,
    ast.Nonlocal,
    ast.AsyncFunctionDef,
    ast.AsyncFor,
    ast.AsyncWith,
    ast.Await,
    ast.ClassDef,
)


def _identifier(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, (ast.FunctionDef, ast.ExceptHandler)):
        return node.name or ""
    if isinstance(node, (ast.arg, ast.keyword)):
        return node.arg or ""
    return ""


def check_script(code: str) -> ast.Module:
    """Parse a bulk-edit script and reject constructs that reach outside the scene data."""
    text = str(code or "")
    if not text.strip():
        raise SandboxExecutionError("Empty script.")
    try:
        tree = ast.parse(text, mode="exec")
    except SyntaxError as exc:
        raise SandboxExecutionError(f"Syntax error: {exc.msg} (line {exc.lineno})", details={"line": exc.lineno}) from exc
    for node in ast.walk(tree):
        ident = _identifier(node)
        if ident and "__" in ident:
            raise SandboxExecutionError(f"Forbidden token: {ident}")
        if isinstance(node, _FORBIDDEN_NODES):
            raise SandboxExecutionError(f"Unsupported statement: {type(node).__name__}")
        if isinstance(node, ast.Name) and node.id in FORBIDDEN_NAMES:
            raise SandboxExecutionError(f"Name not allowed: {node.id}")
        if isinstance(node, ast.Attribute) and (node.attr.startswith("_") or node.attr in FORBIDDEN_ATTRIBUTES):
            raise SandboxExecutionError(f"Attribute not allowed: {node.attr}")
    return tree
