"""Dialect detection for migration files."""

import ast
import logging
import re
from pathlib import PurePath

logger = logging.getLogger(__name__)

SQL_SUFFIXES = (".sql",)
PYTHON_SUFFIXES = (".py",)
JAVASCRIPT_SUFFIXES = (".js", ".cjs", ".mjs", ".ts")

SEQUELIZE_MARKERS = re.compile(r"\bqueryInterface\b|\bmodule\.exports\b|\bexport\s+(?:default|async|const)\b")


def detect_python_dialect(content: str) -> str:
    """Detects whether Python migration content is Django or Alembic.

    Detection logic:
    1. A top-level class inheriting from ``migrations.Migration`` (or an
       imported ``Migration``) means Django
    2. Anything else, including content that does not parse, is Alembic;
       the extractor then reports the syntax error

    Example:
        >>> detect_python_dialect("def upgrade():\\n    op.drop_table('a')\\n")
        'alembic'
    """
    try:
        tree = ast.parse(content)
    except SyntaxError:
        return "alembic"

    has_django_import = False
    for node in tree.body:
        if isinstance(node, ast.ImportFrom) and node.module == "django.db":
            has_django_import = True
        elif isinstance(node, ast.ClassDef):
            for base in node.bases:
                # migrations.Migration
                if isinstance(base, ast.Attribute) and base.attr == "Migration":
                    if isinstance(base.value, ast.Name) and base.value.id == "migrations":
                        return "django"
                # Migration (if imported directly)
                elif isinstance(base, ast.Name) and base.id == "Migration" and has_django_import:
                    return "django"

    return "alembic"


def detect_dialect(file_name: str, content: str) -> str:
    """Detects the migration dialect from the file name, then from content.

    Args:
        file_name: File name or path; only the suffix is used
        content: Migration source text

    Returns:
        One of "sql", "alembic", "django", "sequelize"

    Example:
        >>> detect_dialect("20240101_add_email.sql", "")
        'sql'
        >>> detect_dialect("0002_user_email.py", "class Migration(migrations.Migration): pass")
        'django'
        >>> detect_dialect("20240101-add-email.js", "")
        'sequelize'
    """
    suffix = PurePath(file_name).suffix.lower()
    if suffix in SQL_SUFFIXES:
        return "sql"
    if suffix in PYTHON_SUFFIXES:
        return detect_python_dialect(content)
    if suffix in JAVASCRIPT_SUFFIXES:
        return "sequelize"

    # No usable suffix: look at the content
    if re.search(r"^\s*(?:from|import)\s+\w+|^\s*def\s+upgrade\s*\(", content, re.MULTILINE):
        return detect_python_dialect(content)
    if SEQUELIZE_MARKERS.search(content):
        return "sequelize"
    logger.debug(f"No dialect markers in {file_name}, treating as SQL")
    return "sql"
