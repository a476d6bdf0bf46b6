"""Utilities for safe evaluation of AST values without code execution."""

import ast
from typing import Any, Optional


def safe_eval_string(node: Optional[ast.AST], context: Optional[dict[str, Any]] = None) -> Optional[str]:
    """
    Safely extracts a string value from an AST node.

    Supports:
    - ast.Constant (str)
    - String concatenation ("a" + "b")
    - Implicit f-string free JoinedStr made only of constants
    - Variable lookup in context

    Returns None if the value cannot be safely extracted.
    """
    if node is None:
        return None
    if context is None:
        context = {}

    if isinstance(node, ast.Constant):
        if isinstance(node.value, str):
            return node.value
        return None

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.Add):
        left = safe_eval_string(node.left, context)
        right = safe_eval_string(node.right, context)
        if left is not None and right is not None:
            return left + right
        return None

    if isinstance(node, ast.JoinedStr):
        parts = []
        for value in node.values:
            if isinstance(value, ast.Constant) and isinstance(value.value, str):
                parts.append(value.value)
            else:
                return None
        return "".join(parts)

    if isinstance(node, ast.Name):
        value = context.get(node.id)
        if isinstance(value, str):
            return value
        return None

    return None


def safe_eval_bool(node: Optional[ast.AST], context: Optional[dict[str, Any]] = None) -> Optional[bool]:
    """
    Safely extracts a boolean value from an AST node.

    Supports:
    - ast.Constant (bool)
    - Variable lookup in context
    """
    if node is None:
        return None
    if context is None:
        context = {}

    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool):
            return node.value
        return None

    if isinstance(node, ast.Name):
        value = context.get(node.id)
        if isinstance(value, bool):
            return value
        return None

    return None


def get_keyword(call: ast.Call, name: str) -> Optional[ast.expr]:
    """Returns the raw AST value of a keyword argument, or None if absent."""
    for keyword in call.keywords:
        if keyword.arg == name:
            return keyword.value
    return None


def has_keyword(call: ast.Call, name: str) -> bool:
    """Checks whether a keyword argument is literally present in the call."""
    return any(keyword.arg == name for keyword in call.keywords)


def extract_keyword_arg(call: ast.Call, name: str, context: Optional[dict[str, Any]] = None) -> Optional[Any]:
    """
    Extracts the value of a keyword argument from a function call.

    Returns:
    - str for string arguments
    - bool for boolean arguments
    - None if the argument is not found or cannot be safely extracted
    """
    value = get_keyword(call, name)
    if value is None:
        return None

    str_value = safe_eval_string(value, context)
    if str_value is not None:
        return str_value

    return safe_eval_bool(value, context)


def extract_positional_arg(call: ast.Call, index: int, context: Optional[dict[str, Any]] = None) -> Optional[str]:
    """
    Extracts a positional argument from a function call by index.

    Returns a string or None.
    """
    if index < len(call.args):
        return safe_eval_string(call.args[index], context)

    return None


def extract_arg(
    call: ast.Call, index: int, name: str, context: Optional[dict[str, Any]] = None
) -> Optional[str]:
    """Extracts a string argument given either by keyword or by position."""
    value = extract_keyword_arg(call, name, context)
    if isinstance(value, str):
        return value
    return extract_positional_arg(call, index, context)


def call_name(node: ast.AST) -> Optional[str]:
    """Returns the called name of ``foo(...)`` / ``mod.foo(...)``, else None.

    Example:
        >>> call_name(ast.parse("sa.Column('x')").body[0].value)
        'Column'
    """
    if not isinstance(node, ast.Call):
        return None
    if isinstance(node.func, ast.Name):
        return node.func.id
    if isinstance(node.func, ast.Attribute):
        return node.func.attr
    return None


def source_segment(node: ast.AST, limit: int = 80) -> str:
    """Returns a compact one-line rendering of a node for notes."""
    text = ast.unparse(node)
    text = " ".join(text.split())
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return text
