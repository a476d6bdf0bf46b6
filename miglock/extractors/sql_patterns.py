"""Regular expression patterns for recognizing PostgreSQL DDL.

All patterns run against statements normalized by ``normalize_sql``:
comments removed, whitespace collapsed, no trailing semicolon.
"""

import re
from typing import Dict, Pattern

# Identifier and (schema-)qualified name
IDENT = r'(?:"[^"]+"|[A-Za-z_][\w$]*)'
QNAME = rf"{IDENT}(?:\s*\.\s*{IDENT})*"

# Functions whose result changes per row: a DEFAULT calling one forces a rewrite
VOLATILE_FUNCTIONS = (
    "random",
    "gen_random_uuid",
    "uuid_generate_v1",
    "uuid_generate_v1mc",
    "uuid_generate_v4",
    "clock_timestamp",
    "timeofday",
    "nextval",
    "setseed",
)

VOLATILE_CALL = re.compile(r"\b(?:" + "|".join(VOLATILE_FUNCTIONS) + r")\s*\(", re.IGNORECASE)

SQL_STATEMENT_PATTERNS = {
    "transaction_begin": re.compile(
        r"^(?:BEGIN(?:\s+(?:TRANSACTION|WORK))?|START\s+TRANSACTION)\b(?!\s+ATOMIC)", re.IGNORECASE
    ),
    "transaction_commit": re.compile(r"^(?:COMMIT|END|ROLLBACK)(?:\s+(?:TRANSACTION|WORK))?(?:\s+AND\s+(?:NO\s+)?CHAIN)?$", re.IGNORECASE),
    "alter_table": re.compile(
        rf"^ALTER\s+TABLE\s+(?:IF\s+EXISTS\s+)?(?:ONLY\s+)?(?P<table>{QNAME})\s*\*?\s+(?P<actions>.+)$",
        re.IGNORECASE,
    ),
    "create_index": re.compile(
        rf"^CREATE\s+(?:UNIQUE\s+)?INDEX\s+(?P<concurrently>CONCURRENTLY\s+)?(?:IF\s+NOT\s+EXISTS\s+)?"
        rf"(?:(?P<name>{QNAME})\s+)?ON\s+(?:ONLY\s+)?(?P<table>{QNAME})",
        re.IGNORECASE,
    ),
    "drop_index": re.compile(
        r"^DROP\s+INDEX\s+(?P<concurrently>CONCURRENTLY\s+)?(?:IF\s+EXISTS\s+)?(?P<names>.+?)(?:\s+(?:CASCADE|RESTRICT))?$",
        re.IGNORECASE,
    ),
    "reindex": re.compile(
        rf"^REINDEX\s+(?:\((?P<options>[^)]*)\)\s*)?(?P<target>INDEX|TABLE|SCHEMA|DATABASE|SYSTEM)\s+"
        rf"(?P<concurrently>CONCURRENTLY\s+)?(?P<name>{QNAME})",
        re.IGNORECASE,
    ),
    "create_table": re.compile(
        rf"^CREATE\s+(?:(?:GLOBAL|LOCAL)\s+)?(?:(?:TEMP|TEMPORARY|UNLOGGED)\s+)?TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?"
        rf"(?P<table>{QNAME})(?P<rest>.*)$",
        re.IGNORECASE,
    ),
    "drop_table": re.compile(
        r"^DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?(?P<names>.+?)(?:\s+(?:CASCADE|RESTRICT))?$", re.IGNORECASE
    ),
    "truncate": re.compile(
        r"^TRUNCATE\s+(?:TABLE\s+)?(?P<names>.+?)(?:\s+(?:RESTART|CONTINUE)\s+IDENTITY)?(?:\s+(?:CASCADE|RESTRICT))?$",
        re.IGNORECASE,
    ),
    "vacuum": re.compile(
        r"^VACUUM\b\s*(?:\((?P<options>[^)]*)\)\s*|(?P<flags>(?:(?:FULL|FREEZE|VERBOSE|ANALYZE)\b\s*)*))"
        r"(?P<names>.*)$",
        re.IGNORECASE,
    ),
    "cluster_index_on": re.compile(rf"^CLUSTER\s+(?:VERBOSE\s+)?(?P<index>{QNAME})\s+ON\s+(?P<table>{QNAME})$", re.IGNORECASE),
    "cluster": re.compile(
        rf"^CLUSTER\s+(?:VERBOSE\s+)?(?:\([^)]*\)\s*)?(?P<table>{QNAME})(?:\s+USING\s+(?P<index>{QNAME}))?$",
        re.IGNORECASE,
    ),
}

# Actions of ALTER TABLE, matched against one comma-separated action
SQL_ACTION_PATTERNS = {
    "add_table_constraint": re.compile(
        rf"^ADD\s+(?:CONSTRAINT\s+(?P<name>{IDENT})\s+)?"
        r"(?P<kind>CHECK|UNIQUE|PRIMARY\s+KEY|EXCLUDE|FOREIGN\s+KEY)\b(?P<body>.*)$",
        re.IGNORECASE,
    ),
    "add_column": re.compile(
        rf"^ADD\s+(?:COLUMN\s+)?(?:IF\s+NOT\s+EXISTS\s+)?(?P<column>{IDENT})\s+(?P<definition>.+)$",
        re.IGNORECASE,
    ),
    "drop_constraint": re.compile(rf"^DROP\s+CONSTRAINT\s+(?:IF\s+EXISTS\s+)?(?P<name>{IDENT})", re.IGNORECASE),
    "drop_column": re.compile(rf"^DROP\s+(?:COLUMN\s+)?(?:IF\s+EXISTS\s+)?(?P<column>{IDENT})", re.IGNORECASE),
    "alter_constraint": re.compile(r"^ALTER\s+CONSTRAINT\b", re.IGNORECASE),
    "alter_column": re.compile(rf"^ALTER\s+(?:COLUMN\s+)?(?P<column>{IDENT})\s+(?P<change>.+)$", re.IGNORECASE),
    "validate_constraint": re.compile(rf"^VALIDATE\s+CONSTRAINT\s+(?P<name>{IDENT})$", re.IGNORECASE),
    "rename_table": re.compile(rf"^RENAME\s+TO\s+(?P<new>{IDENT})$", re.IGNORECASE),
    "rename_constraint": re.compile(r"^RENAME\s+CONSTRAINT\b", re.IGNORECASE),
    "rename_column": re.compile(rf"^RENAME\s+(?:COLUMN\s+)?(?P<old>{IDENT})\s+TO\s+(?P<new>{IDENT})$", re.IGNORECASE),
}

# Changes inside ALTER COLUMN
SQL_COLUMN_CHANGE_PATTERNS = {
    "set_default": re.compile(r"^SET\s+DEFAULT\b", re.IGNORECASE),
    "drop_default": re.compile(r"^DROP\s+DEFAULT$", re.IGNORECASE),
    "set_not_null": re.compile(r"^SET\s+NOT\s+NULL$", re.IGNORECASE),
    "drop_not_null": re.compile(r"^DROP\s+NOT\s+NULL$", re.IGNORECASE),
    "set_type": re.compile(r"^(?:SET\s+DATA\s+)?TYPE\b", re.IGNORECASE),
}

# Fragments inside column definitions and constraint bodies
SQL_HELPER_PATTERNS = {
    "default": re.compile(
        r"\bDEFAULT\s+(?P<expr>.+?)(?=\s+(?:NOT\s+NULL|NULL|CONSTRAINT|CHECK|UNIQUE|PRIMARY\s+KEY|REFERENCES|GENERATED|COLLATE)\b|$)",
        re.IGNORECASE,
    ),
    "not_null": re.compile(r"\bNOT\s+NULL\b", re.IGNORECASE),
    "primary_key": re.compile(r"\bPRIMARY\s+KEY\b", re.IGNORECASE),
    "unique": re.compile(r"\bUNIQUE\b", re.IGNORECASE),
    "check": re.compile(r"\bCHECK\s*\(", re.IGNORECASE),
    "references": re.compile(rf"\bREFERENCES\s+(?P<table>{QNAME})", re.IGNORECASE),
    "generated_stored": re.compile(r"\bGENERATED\s+ALWAYS\s+AS\s*\(.*\)\s*STORED\b", re.IGNORECASE),
    "identity": re.compile(r"\bGENERATED\s+(?:ALWAYS|BY\s+DEFAULT)\s+AS\s+IDENTITY\b", re.IGNORECASE),
    "serial_type": re.compile(r"^(?:small|big)?serial[248]?\b", re.IGNORECASE),
    "not_valid": re.compile(r"\bNOT\s+VALID\b", re.IGNORECASE),
    "using_index": re.compile(r"\bUSING\s+INDEX\s+(?!TABLESPACE\b)", re.IGNORECASE),
    "check_is_not_null": re.compile(rf"^\s*\(\s*(?P<column>{IDENT})\s+IS\s+NOT\s+NULL\s*\)", re.IGNORECASE),
}


def get_sql_statement_patterns() -> Dict[str, Pattern]:
    """Return dictionary with statement-level patterns."""
    return SQL_STATEMENT_PATTERNS.copy()


def get_sql_action_patterns() -> Dict[str, Pattern]:
    """Return dictionary with ALTER TABLE action patterns."""
    return SQL_ACTION_PATTERNS.copy()


def get_sql_column_change_patterns() -> Dict[str, Pattern]:
    """Return dictionary with ALTER COLUMN change patterns."""
    return SQL_COLUMN_CHANGE_PATTERNS.copy()


def get_sql_helper_patterns() -> Dict[str, Pattern]:
    """Return dictionary with helper patterns for definitions and constraint bodies."""
    return SQL_HELPER_PATTERNS.copy()


def is_volatile_expression(expression: str) -> bool:
    """Check whether a DEFAULT expression calls a volatile function.

    Example:
        >>> is_volatile_expression("gen_random_uuid()")
        True
        >>> is_volatile_expression("now()")
        False
    """
    return bool(VOLATILE_CALL.search(expression))
