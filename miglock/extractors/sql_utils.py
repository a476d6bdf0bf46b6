"""Utilities for working with SQL text."""

import re
from typing import List

import sqlparse


def normalize_sql(sql: str) -> str:
    """
    Normalize one SQL statement: remove comments, extra spaces and the trailing semicolon.

    Args:
        sql: Original SQL statement

    Returns:
        Normalized SQL statement

    Example:
        >>> normalize_sql("ALTER TABLE users -- comment\\n  DROP COLUMN email;")
        'ALTER TABLE users DROP COLUMN email'
    """
    sql = sqlparse.format(sql, strip_comments=True)
    sql = re.sub(r"\s+", " ", sql).strip()
    return sql.rstrip(";").strip()


def split_statements(sql: str) -> List[str]:
    """
    Split a SQL script into normalized statements.

    Splitting is done by sqlparse, so semicolons inside string literals,
    dollar-quoted bodies and comments do not end a statement. Statements that
    are empty after removing comments are dropped.

    Example:
        >>> split_statements("BEGIN; DROP TABLE a; COMMIT;")
        ['BEGIN', 'DROP TABLE a', 'COMMIT']
    """
    statements = []
    for raw in sqlparse.split(sql):
        normalized = normalize_sql(raw)
        if normalized:
            statements.append(normalized)
    return statements


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """
    Split text on a separator that is not nested in parentheses or quotes.

    Example:
        >>> split_top_level("ADD COLUMN a numeric(10, 2), DROP COLUMN b")
        ['ADD COLUMN a numeric(10, 2)', 'DROP COLUMN b']
    """
    parts = []
    depth = 0
    quote = ""
    current: List[str] = []

    for char in text:
        if quote:
            current.append(char)
            if char == quote:
                quote = ""
            continue
        if char in ("'", '"'):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth = max(0, depth - 1)
        elif char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)

    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [part for part in parts if part]


def normalize_identifier(name: str) -> str:
    """
    Normalize a possibly schema-qualified identifier the way PostgreSQL resolves it.

    Unquoted parts are folded to lower case, quoted parts keep their case.

    Example:
        >>> normalize_identifier('Public."UserAccounts"')
        'public.UserAccounts'
    """
    parts = []
    for part in re.findall(r'"[^"]+"|[^.\s"]+', name.strip()):
        if part.startswith('"') and part.endswith('"'):
            parts.append(part[1:-1])
        else:
            parts.append(part.lower())
    return ".".join(parts)


def excerpt(sql: str, limit: int = 80) -> str:
    """Return a single-line excerpt of a statement for notes."""
    sql = re.sub(r"\s+", " ", sql).strip()
    if len(sql) > limit:
        return sql[: limit - 3] + "..."
    return sql
