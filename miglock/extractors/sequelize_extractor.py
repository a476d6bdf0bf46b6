"""Extractor for Sequelize (JavaScript/TypeScript) migrations.

Recognition is regex-based: ``queryInterface.*`` calls inside ``up`` are
located, their argument list is cut out with a bracket-aware scanner, and
string / object-literal arguments are read shallowly. Code is not executed.
"""

import logging
import re
from typing import Dict, List, Optional

from ..base import ExtractionResult, OperationExtractor
from ..exceptions import ExtractionError
from ..models import ConstraintKind, Operation, OperationKind, TransactionTokenKind
from .sql_extractor import SqlExtractor
from .sql_patterns import VOLATILE_FUNCTIONS, is_volatile_expression
from .tracking import ExtractionBuilder

logger = logging.getLogger(__name__)

SEQUELIZE_PATTERNS = {
    "up": re.compile(r"\bup\s*(?:[:=]\s*)?(?:async\s+)?(?:function\s*)?\("),
    "down": re.compile(r"\bdown\s*(?:[:=]\s*)?(?:async\s+)?(?:function\s*)?\("),
    "call": re.compile(
        r"\b(?:(?:queryInterface|qi)\s*\.\s*(?:sequelize\s*\.\s*)?|sequelize\s*\.\s*)(?P<method>\w+)\s*\("
    ),
    "transaction_option": re.compile(r"\btransaction\s*:"),
    "transaction_call": re.compile(r"\.\s*transaction\s*\("),
    "volatile_fn": re.compile(
        r"\bfn\s*\(\s*['\"](?:" + "|".join(VOLATILE_FUNCTIONS) + r")['\"]", re.IGNORECASE
    ),
}

# Calls found by the call pattern that are not operations on their own
IGNORED_METHODS = ("transaction", "fn", "col", "literal", "define", "authenticate")

CONSTRAINT_TYPES = {
    "check": ConstraintKind.CHECK,
    "unique": ConstraintKind.UNIQUE,
    "primary key": ConstraintKind.PRIMARY_KEY,
    "foreign key": ConstraintKind.FOREIGN_KEY,
}

OPENING = "([{"
CLOSING = ")]}"


def strip_js_comments(source: str) -> str:
    """Remove // and /* */ comments, leaving string literals intact."""
    result: List[str] = []
    i = 0
    quote = ""
    while i < len(source):
        char = source[i]
        if quote:
            result.append(char)
            if char == "\\" and i + 1 < len(source):
                result.append(source[i + 1])
                i += 2
                continue
            if char == quote:
                quote = ""
            i += 1
            continue
        if char in "'\"`":
            quote = char
        elif source.startswith("//", i):
            end = source.find("\n", i)
            i = len(source) if end == -1 else end
            continue
        elif source.startswith("/*", i):
            end = source.find("*/", i + 2)
            i = len(source) if end == -1 else end + 2
            continue
        result.append(char)
        i += 1
    return "".join(result)


def read_call_arguments(source: str, start: int) -> Optional[str]:
    """Return the text between the parenthesis at ``start - 1`` and its match."""
    depth = 1
    quote = ""
    i = start
    while i < len(source):
        char = source[i]
        if quote:
            if char == "\\":
                i += 2
                continue
            if char == quote:
                quote = ""
        elif char in "'\"`":
            quote = char
        elif char in OPENING:
            depth += 1
        elif char in CLOSING:
            depth -= 1
            if depth == 0:
                return source[start:i]
        i += 1
    return None


def split_js_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on a separator outside brackets and string literals."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    quote = ""
    escaped = False
    for char in text:
        if quote:
            current.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = ""
            continue
        if char in "'\"`":
            quote = char
        elif char in OPENING:
            depth += 1
        elif char in CLOSING:
            depth -= 1
        elif char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def js_string(text: Optional[str]) -> Optional[str]:
    """Value of a JS string literal, or None for anything dynamic.

    Example:
        >>> js_string("'users'")
        'users'
        >>> js_string("`${prefix}_users`") is None
        True
    """
    if text is None:
        return None
    match = re.fullmatch(r"\s*(['\"`])(.*)\1\s*", text, re.DOTALL)
    if not match:
        return None
    if match.group(1) == "`" and "${" in match.group(2):
        return None
    return re.sub(r"\\(.)", r"\1", match.group(2))


def js_object(text: Optional[str]) -> Dict[str, str]:
    """Top-level entries of an object literal as raw value text.

    Example:
        >>> js_object("{ allowNull: false, references: { model: 'users' } }")
        {'allowNull': 'false', 'references': "{ model: 'users' }"}
    """
    if text is None:
        return {}
    text = text.strip()
    if not (text.startswith("{") and text.endswith("}")):
        return {}
    entries: Dict[str, str] = {}
    for entry in split_js_top_level(text[1:-1]):
        pieces = split_js_top_level(entry, ":")
        key = pieces[0].strip().strip("'\"")
        if not re.fullmatch(r"[\w$ ]+", key):
            continue
        entries[key] = ":".join(pieces[1:]).strip() if len(pieces) > 1 else key
    return entries


def js_true(text: Optional[str]) -> bool:
    return text is not None and text.strip() == "true"


def js_false(text: Optional[str]) -> bool:
    return text is not None and text.strip() == "false"


class SequelizeExtractor(OperationExtractor):
    """Extractor for Sequelize migrations written in JavaScript or TypeScript."""

    dialect = "sequelize"

    def __init__(self, pg_version: Optional[int] = None):
        self.pg_version = pg_version
        self.sql_extractor = SqlExtractor(pg_version=pg_version)
        self.patterns = SEQUELIZE_PATTERNS.copy()

    def extract(self, content: str) -> ExtractionResult:
        if not isinstance(content, str):
            raise ExtractionError(f"content must be a string, got {type(content).__name__}")

        body = self._up_body(strip_js_comments(content))
        builder = ExtractionBuilder()

        # Wrapper markers cover the whole unit
        for name in ("transaction_call", "transaction_option"):
            match = self.patterns[name].search(body)
            if match:
                logger.debug(f"Transaction wrapper found: {match.group(0)}")
                builder.add_token(TransactionTokenKind.WRAPPER, match.group(0).strip())

        for match in self.patterns["call"].finditer(body):
            method = match.group("method")
            if method in IGNORED_METHODS:
                continue
            arguments = read_call_arguments(body, match.end())
            if arguments is None:
                raise ExtractionError(f"Unbalanced parentheses in {method}() call")
            self._handle_call(builder, method, split_js_top_level(arguments), f"{method}({arguments})")

        return builder.finish()

    def _up_body(self, source: str) -> str:
        """Return the text of the ``up`` migration, or the whole file when absent."""
        up = self.patterns["up"].search(source)
        if not up:
            return source
        down = self.patterns["down"].search(source, up.end())
        return source[up.start(): down.start() if down else len(source)]

    def _handle_call(self, builder: ExtractionBuilder, method: str, args: List[str], text: str) -> None:
        handler = getattr(self, f"_extract_{re.sub(r'(?<!^)(?=[A-Z])', '_', method).lower()}", None)
        statement = " ".join(text.split())
        if len(statement) > 80:
            statement = statement[:77] + "..."

        if handler is None:
            logger.debug(f"Unrecognized Sequelize call: {method}")
            builder.add(Operation(kind=OperationKind.UNKNOWN, statement=statement))
            return

        operations = handler(args, statement, builder)
        if operations is None:
            builder.add(Operation(kind=OperationKind.UNKNOWN, statement=statement))
        else:
            builder.extend(operations)

    def _table(self, text: Optional[str]) -> Optional[str]:
        """Table name from a string or ``{ tableName, schema }`` argument."""
        name = js_string(text)
        if name is not None:
            return name
        entries = js_object(text)
        table = js_string(entries.get("tableName"))
        schema = js_string(entries.get("schema"))
        if table and schema:
            return f"{schema}.{table}"
        return table

    def _arg(self, args: List[str], index: int) -> Optional[str]:
        return args[index] if index < len(args) else None

    def _reference(self, attributes: Dict[str, str]) -> Optional[str]:
        references = attributes.get("references")
        if references is None:
            return None
        entries = js_object(references)
        return self._table(entries.get("model") or entries.get("table"))

    # Columns

    def _extract_add_column(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        column = js_string(self._arg(args, 1))
        if not table or not column:
            return None

        attributes = js_object(self._arg(args, 2))
        default = attributes.get("defaultValue")
        auto_increment = js_true(attributes.get("autoIncrement"))
        primary_key = js_true(attributes.get("primaryKey"))
        volatile = auto_increment or (
            default is not None
            and (is_volatile_expression(default) or bool(self.patterns["volatile_fn"].search(default)))
        )

        operations = [
            Operation(
                kind=OperationKind.ADD_COLUMN,
                target_table=table,
                column=column,
                has_default=default is not None or auto_increment,
                default_is_volatile=volatile,
                pg_version_at_least_11=self.sql_extractor.pg_version_at_least_11,
                has_not_null=js_false(attributes.get("allowNull")) or primary_key,
                statement=statement,
            )
        ]

        referenced = self._reference(attributes)
        if referenced:
            operations.append(
                Operation(
                    kind=OperationKind.ADD_CONSTRAINT,
                    target_table=table,
                    column=column,
                    constraint_kind=ConstraintKind.FOREIGN_KEY,
                    referenced_table=referenced,
                    statement=statement,
                )
            )
        if primary_key:
            operations.append(Operation(kind=OperationKind.ADD_CONSTRAINT, target_table=table, column=column,
                                        constraint_kind=ConstraintKind.PRIMARY_KEY, statement=statement))
        elif js_true(attributes.get("unique")):
            operations.append(Operation(kind=OperationKind.ADD_CONSTRAINT, target_table=table, column=column,
                                        constraint_kind=ConstraintKind.UNIQUE, statement=statement))
        return operations

    def _extract_remove_column(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        if not table:
            return None
        return [
            Operation(kind=OperationKind.DROP_COLUMN, target_table=table,
                      column=js_string(self._arg(args, 1)), statement=statement)
        ]

    def _extract_change_column(self, args, statement, builder) -> Optional[List[Operation]]:
        """changeColumn re-declares the column; each declared attribute is one change."""
        table = self._table(self._arg(args, 0))
        column = js_string(self._arg(args, 1))
        attributes = js_object(self._arg(args, 2))
        if not table or not attributes:
            return None

        kinds = []
        if "type" in attributes:
            kinds.append(OperationKind.ALTER_COLUMN_TYPE)
        if js_false(attributes.get("allowNull")):
            kinds.append(OperationKind.SET_NOT_NULL)
        elif js_true(attributes.get("allowNull")):
            kinds.append(OperationKind.DROP_NOT_NULL)
        if "defaultValue" in attributes:
            kinds.append(OperationKind.SET_DEFAULT)
        if not kinds:
            return None
        return [Operation(kind=kind, target_table=table, column=column, statement=statement) for kind in kinds]

    def _extract_rename_column(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        if not table:
            return None
        return [
            Operation(
                kind=OperationKind.RENAME_COLUMN,
                target_table=table,
                column=js_string(self._arg(args, 1)),
                new_name=js_string(self._arg(args, 2)),
                statement=statement,
            )
        ]

    # Tables

    def _extract_create_table(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        if not table:
            return None
        references: List[str] = []
        for definition in js_object(self._arg(args, 1)).values():
            referenced = self._reference(js_object(definition))
            if referenced and referenced not in references:
                references.append(referenced)
        if not references:
            return [Operation(kind=OperationKind.CREATE_TABLE, target_table=table, statement=statement)]
        return [
            Operation(kind=OperationKind.CREATE_TABLE, target_table=table, referenced_table=name, statement=statement)
            for name in references
        ]

    def _extract_drop_table(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        if not table:
            return None
        return [Operation(kind=OperationKind.DROP_TABLE, target_table=table, statement=statement)]

    def _extract_rename_table(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        if not table:
            return None
        return [
            Operation(kind=OperationKind.RENAME_TABLE, target_table=table,
                      new_name=self._table(self._arg(args, 1)), statement=statement)
        ]

    # Indexes

    def _index_options(self, args: List[str]) -> Dict[str, str]:
        options: Dict[str, str] = {}
        for arg in args[1:]:
            options.update(js_object(arg))
        return options

    def _extract_add_index(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        if not table:
            return None
        options = self._index_options(args)
        return [
            Operation(
                kind=OperationKind.CREATE_INDEX,
                target_table=table,
                index_name=js_string(options.get("name")),
                concurrently=js_true(options.get("concurrently")),
                statement=statement,
            )
        ]

    def _extract_remove_index(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        if not table:
            return None
        options = self._index_options(args)
        return [
            Operation(
                kind=OperationKind.DROP_INDEX,
                target_table=table,
                index_name=js_string(self._arg(args, 1)),
                concurrently=js_true(options.get("concurrently")),
                statement=statement,
            )
        ]

    # Constraints

    def _extract_add_constraint(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        options = js_object(self._arg(args, 1))
        constraint_type = (js_string(options.get("type")) or "").lower()
        if not table or constraint_type not in CONSTRAINT_TYPES:
            return None
        kind = CONSTRAINT_TYPES[constraint_type]
        referenced = None
        if kind == ConstraintKind.FOREIGN_KEY:
            referenced = self._reference(options)
        return [
            Operation(
                kind=OperationKind.ADD_CONSTRAINT,
                target_table=table,
                constraint_kind=kind,
                constraint_name=js_string(options.get("name")),
                referenced_table=referenced,
                statement=statement,
            )
        ]

    def _extract_remove_constraint(self, args, statement, builder) -> Optional[List[Operation]]:
        table = self._table(self._arg(args, 0))
        if not table:
            return None
        return [
            Operation(kind=OperationKind.DROP_CONSTRAINT, target_table=table,
                      constraint_name=js_string(self._arg(args, 1)), statement=statement)
        ]

    # Raw SQL

    def _extract_query(self, args, statement, builder) -> Optional[List[Operation]]:
        sql = js_string(self._arg(args, 0))
        if sql is None:
            logger.debug("sequelize.query() with dynamic SQL")
            return None
        self.sql_extractor.extract_into(sql, builder)
        return []
