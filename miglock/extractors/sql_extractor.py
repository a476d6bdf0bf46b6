"""Extractor for raw SQL migrations."""

import logging
import re
from typing import Callable, List, Optional

from ..base import ExtractionResult, OperationExtractor
from ..exceptions import ExtractionError
from ..models import ConstraintKind, Operation, OperationKind, TransactionTokenKind
from .sql_patterns import (
    IDENT,
    get_sql_action_patterns,
    get_sql_column_change_patterns,
    get_sql_helper_patterns,
    get_sql_statement_patterns,
    is_volatile_expression,
)
from .sql_utils import excerpt, normalize_identifier, split_statements, split_top_level
from .tracking import ExtractionBuilder

logger = logging.getLogger(__name__)

CONSTRAINT_KINDS = {
    "CHECK": ConstraintKind.CHECK,
    "UNIQUE": ConstraintKind.UNIQUE,
    "PRIMARY KEY": ConstraintKind.PRIMARY_KEY,
    "EXCLUDE": ConstraintKind.EXCLUDE,
    "FOREIGN KEY": ConstraintKind.FOREIGN_KEY,
}

LEADING_NAME = re.compile(rf"^\s*(?:ONLY\s+)?(?P<name>{IDENT}(?:\s*\.\s*{IDENT})*)", re.IGNORECASE)


def _flatten_parentheses(text: str) -> str:
    """Replace every parenthesized group with ``[]`` so keywords inside bodies are ignored."""
    previous = None
    while previous != text:
        previous = text
        text = re.sub(r"\([^()]*\)", "[]", text)
    return text


class SqlExtractor(OperationExtractor):
    """Extractor for PostgreSQL migration scripts.

    Splits the script into statements and recognizes DDL with compiled
    regular expressions. Statements it does not recognize become
    ``UNKNOWN`` operations so they stay visible in the report.

    Example:
        >>> extractor = SqlExtractor()
        >>> result = extractor.extract("ALTER TABLE users ADD COLUMN email text NOT NULL;")
        >>> result.operations[0].kind
        <OperationKind.ADD_COLUMN: 'add_column'>
        >>> result.operations[0].has_not_null
        True
    """

    dialect = "sql"

    def __init__(self, pg_version: Optional[int] = None):
        """
        Initialize SQL extractor.

        Args:
            pg_version: Major PostgreSQL version the migration targets.
                None means 11 or later.
        """
        self.pg_version = pg_version
        self._statements = get_sql_statement_patterns()
        self._actions = get_sql_action_patterns()
        self._changes = get_sql_column_change_patterns()
        self._helpers = get_sql_helper_patterns()

    @property
    def pg_version_at_least_11(self) -> bool:
        return self.pg_version is None or self.pg_version >= 11

    def extract(self, content: str) -> ExtractionResult:
        builder = ExtractionBuilder()
        self.extract_into(content, builder)
        return builder.finish()

    def extract_into(self, sql: str, builder: ExtractionBuilder) -> None:
        """Extract operations from a SQL script into an existing builder.

        ORM extractors use this for raw SQL embedded in their migrations.

        Raises:
            ExtractionError: If sql is not a string
        """
        if not isinstance(sql, str):
            raise ExtractionError(f"sql must be a string, got {type(sql).__name__}")

        for statement in split_statements(sql):
            self._extract_statement(statement, builder)

    def _extract_statement(self, statement: str, builder: ExtractionBuilder) -> None:
        if self._statements["transaction_begin"].match(statement):
            builder.add_token(TransactionTokenKind.BEGIN, statement)
            return
        if self._statements["transaction_commit"].match(statement):
            builder.add_token(TransactionTokenKind.COMMIT, statement)
            return

        handlers: List[Callable[[str], Optional[List[Operation]]]] = [
            self._alter_table,
            self._create_index,
            self._drop_index,
            self._reindex,
            self._create_table,
            self._drop_table,
            self._truncate,
            self._vacuum,
            self._cluster,
        ]
        for handler in handlers:
            operations = handler(statement)
            if operations is not None:
                builder.extend(operations)
                return

        logger.debug(f"Unrecognized statement: {excerpt(statement)}")
        builder.add(self._unknown(statement))

    def _unknown(self, statement: str) -> Operation:
        return Operation(kind=OperationKind.UNKNOWN, statement=excerpt(statement))

    # ALTER TABLE

    def _alter_table(self, statement: str) -> Optional[List[Operation]]:
        match = self._statements["alter_table"].match(statement)
        if not match:
            return None

        table = normalize_identifier(match.group("table"))
        operations: List[Operation] = []
        for action in split_top_level(match.group("actions")):
            operations.extend(self._alter_action(table, action, statement))
        return operations

    def _alter_action(self, table: str, action: str, statement: str) -> List[Operation]:
        actions = self._actions
        text = excerpt(statement)

        match = actions["add_table_constraint"].match(action)
        if match:
            return [self._table_constraint(table, match, text)]

        match = actions["add_column"].match(action)
        if match:
            return self._add_column(table, match, text)

        match = actions["drop_constraint"].match(action)
        if match:
            return [
                Operation(
                    kind=OperationKind.DROP_CONSTRAINT,
                    target_table=table,
                    constraint_name=normalize_identifier(match.group("name")),
                    statement=text,
                )
            ]

        match = actions["drop_column"].match(action)
        if match:
            return [
                Operation(
                    kind=OperationKind.DROP_COLUMN,
                    target_table=table,
                    column=normalize_identifier(match.group("column")),
                    statement=text,
                )
            ]

        if not actions["alter_constraint"].match(action):
            match = actions["alter_column"].match(action)
            if match:
                return [self._alter_column(table, match, text)]

        match = actions["validate_constraint"].match(action)
        if match:
            return [
                Operation(
                    kind=OperationKind.VALIDATE_CONSTRAINT,
                    target_table=table,
                    constraint_name=normalize_identifier(match.group("name")),
                    statement=text,
                )
            ]

        match = actions["rename_table"].match(action)
        if match:
            return [
                Operation(
                    kind=OperationKind.RENAME_TABLE,
                    target_table=table,
                    new_name=normalize_identifier(match.group("new")),
                    statement=text,
                )
            ]

        if not actions["rename_constraint"].match(action):
            match = actions["rename_column"].match(action)
            if match:
                return [
                    Operation(
                        kind=OperationKind.RENAME_COLUMN,
                        target_table=table,
                        column=normalize_identifier(match.group("old")),
                        new_name=normalize_identifier(match.group("new")),
                        statement=text,
                    )
                ]

        logger.debug(f"Unrecognized ALTER TABLE action on {table}: {action}")
        return [self._unknown(f"ALTER TABLE {table} {action}")]

    def _table_constraint(self, table: str, match: re.Match, text: str) -> Operation:
        helpers = self._helpers
        kind = CONSTRAINT_KINDS[re.sub(r"\s+", " ", match.group("kind")).upper()]
        body = match.group("body")
        name = match.group("name")

        operation = Operation(
            kind=OperationKind.ADD_CONSTRAINT,
            target_table=table,
            constraint_kind=kind,
            constraint_name=normalize_identifier(name) if name else None,
            has_not_valid=bool(helpers["not_valid"].search(body)),
            statement=text,
        )

        if kind == ConstraintKind.FOREIGN_KEY:
            reference = helpers["references"].search(body)
            if reference:
                operation.referenced_table = normalize_identifier(reference.group("table"))
        elif kind in (ConstraintKind.UNIQUE, ConstraintKind.PRIMARY_KEY):
            operation.uses_existing_index = bool(helpers["using_index"].search(body))
        elif kind == ConstraintKind.CHECK:
            not_null_check = helpers["check_is_not_null"].match(body)
            if not_null_check:
                operation.column = normalize_identifier(not_null_check.group("column"))

        return operation

    def _add_column(self, table: str, match: re.Match, text: str) -> List[Operation]:
        helpers = self._helpers
        column = normalize_identifier(match.group("column"))
        definition = match.group("definition")
        flat = _flatten_parentheses(definition)

        default = helpers["default"].search(definition)
        has_default = default is not None
        volatile = has_default and is_volatile_expression(default.group("expr"))
        # SERIAL and IDENTITY declare a sequence-backed default
        if helpers["serial_type"].match(definition) or helpers["identity"].search(definition):
            has_default = True
            volatile = True

        primary_key = bool(helpers["primary_key"].search(flat))

        operations = [
            Operation(
                kind=OperationKind.ADD_COLUMN,
                target_table=table,
                column=column,
                has_default=has_default,
                default_is_volatile=volatile,
                pg_version_at_least_11=self.pg_version_at_least_11,
                has_not_null=bool(helpers["not_null"].search(flat)) or primary_key,
                is_generated_stored=bool(helpers["generated_stored"].search(definition)),
                statement=text,
            )
        ]

        reference = helpers["references"].search(flat)
        if reference:
            operations.append(
                Operation(
                    kind=OperationKind.ADD_CONSTRAINT,
                    target_table=table,
                    column=column,
                    constraint_kind=ConstraintKind.FOREIGN_KEY,
                    referenced_table=normalize_identifier(reference.group("table")),
                    statement=text,
                )
            )
        if primary_key:
            operations.append(self._inline_constraint(table, column, ConstraintKind.PRIMARY_KEY, text))
        elif helpers["unique"].search(flat):
            operations.append(self._inline_constraint(table, column, ConstraintKind.UNIQUE, text))
        if helpers["check"].search(definition):
            operations.append(self._inline_constraint(table, None, ConstraintKind.CHECK, text))

        return operations

    def _inline_constraint(self, table: str, column: Optional[str], kind: ConstraintKind, text: str) -> Operation:
        return Operation(
            kind=OperationKind.ADD_CONSTRAINT,
            target_table=table,
            column=column if kind != ConstraintKind.CHECK else None,
            constraint_kind=kind,
            statement=text,
        )

    def _alter_column(self, table: str, match: re.Match, text: str) -> Operation:
        changes = self._changes
        column = normalize_identifier(match.group("column"))
        change = match.group("change")

        if changes["set_default"].match(change):
            kind = OperationKind.SET_DEFAULT
        elif changes["drop_default"].match(change):
            kind = OperationKind.DROP_DEFAULT
        elif changes["set_not_null"].match(change):
            kind = OperationKind.SET_NOT_NULL
        elif changes["drop_not_null"].match(change):
            kind = OperationKind.DROP_NOT_NULL
        elif changes["set_type"].match(change):
            kind = OperationKind.ALTER_COLUMN_TYPE
        else:
            logger.debug(f"Unrecognized ALTER COLUMN change on {table}.{column}: {change}")
            return self._unknown(f"ALTER TABLE {table} ALTER COLUMN {column} {change}")

        return Operation(kind=kind, target_table=table, column=column, statement=text)

    # Indexes

    def _create_index(self, statement: str) -> Optional[List[Operation]]:
        match = self._statements["create_index"].match(statement)
        if not match:
            return None

        name = match.group("name")
        return [
            Operation(
                kind=OperationKind.CREATE_INDEX,
                target_table=normalize_identifier(match.group("table")),
                index_name=normalize_identifier(name) if name else None,
                concurrently=bool(match.group("concurrently")),
                statement=excerpt(statement),
            )
        ]

    def _drop_index(self, statement: str) -> Optional[List[Operation]]:
        match = self._statements["drop_index"].match(statement)
        if not match:
            return None

        concurrently = bool(match.group("concurrently"))
        return [
            Operation(
                kind=OperationKind.DROP_INDEX,
                index_name=normalize_identifier(name),
                concurrently=concurrently,
                statement=excerpt(statement),
            )
            for name in split_top_level(match.group("names"))
        ]

    def _reindex(self, statement: str) -> Optional[List[Operation]]:
        match = self._statements["reindex"].match(statement)
        if not match:
            return None

        target = match.group("target").upper()
        if target not in ("INDEX", "TABLE"):
            return None

        options = (match.group("options") or "").upper()
        concurrently = bool(match.group("concurrently")) or bool(
            re.search(r"\bCONCURRENTLY\b(?!\s+(?:FALSE|OFF|0)\b)", options)
        )
        name = normalize_identifier(match.group("name"))
        operation = Operation(kind=OperationKind.REINDEX, concurrently=concurrently, statement=excerpt(statement))
        if target == "TABLE":
            operation.target_table = name
        else:
            operation.index_name = name
        return [operation]

    # Tables

    def _create_table(self, statement: str) -> Optional[List[Operation]]:
        match = self._statements["create_table"].match(statement)
        if not match:
            return None

        table = normalize_identifier(match.group("table"))
        references: List[str] = []
        for reference in self._helpers["references"].finditer(match.group("rest")):
            name = normalize_identifier(reference.group("table"))
            if name not in references:
                references.append(name)

        text = excerpt(statement)
        if not references:
            return [Operation(kind=OperationKind.CREATE_TABLE, target_table=table, statement=text)]
        return [
            Operation(kind=OperationKind.CREATE_TABLE, target_table=table, referenced_table=name, statement=text)
            for name in references
        ]

    def _table_list(self, names: str) -> List[str]:
        tables = []
        for part in split_top_level(names):
            match = LEADING_NAME.match(part)
            if match:
                tables.append(normalize_identifier(match.group("name")))
        return tables

    def _drop_table(self, statement: str) -> Optional[List[Operation]]:
        match = self._statements["drop_table"].match(statement)
        if not match:
            return None
        text = excerpt(statement)
        return [
            Operation(kind=OperationKind.DROP_TABLE, target_table=table, statement=text)
            for table in self._table_list(match.group("names"))
        ]

    def _truncate(self, statement: str) -> Optional[List[Operation]]:
        match = self._statements["truncate"].match(statement)
        if not match:
            return None
        text = excerpt(statement)
        return [
            Operation(kind=OperationKind.TRUNCATE, target_table=table, statement=text)
            for table in self._table_list(match.group("names"))
        ]

    def _vacuum(self, statement: str) -> Optional[List[Operation]]:
        match = self._statements["vacuum"].match(statement)
        if not match:
            return None

        full = False
        if match.group("options") is not None:
            for option in split_top_level(match.group("options")):
                words = option.upper().split()
                if words and words[0] == "FULL" and (len(words) == 1 or words[1] not in ("FALSE", "OFF", "0")):
                    full = True
        elif match.group("flags"):
            full = "FULL" in match.group("flags").upper().split()

        tables = self._table_list(match.group("names"))
        # plain VACUUM and database-wide VACUUM FULL stay unknown
        if not full or not tables:
            return None

        text = excerpt(statement)
        return [Operation(kind=OperationKind.VACUUM_FULL, target_table=table, statement=text) for table in tables]

    def _cluster(self, statement: str) -> Optional[List[Operation]]:
        match = self._statements["cluster_index_on"].match(statement) or self._statements["cluster"].match(statement)
        if not match:
            return None
        return [
            Operation(
                kind=OperationKind.CLUSTER,
                target_table=normalize_identifier(match.group("table")),
                index_name=normalize_identifier(match.group("index")) if match.group("index") else None,
                statement=excerpt(statement),
            )
        ]
