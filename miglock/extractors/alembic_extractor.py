"""AST extractor for Alembic migration files."""

import ast
import logging
from typing import Any, List, Optional, Tuple

from ..ast_utils import (
    call_name,
    extract_arg,
    extract_keyword_arg,
    extract_positional_arg,
    get_keyword,
    has_keyword,
    safe_eval_bool,
    safe_eval_string,
    source_segment,
)
from ..base import ExtractionResult, OperationExtractor
from ..exceptions import ExtractionError
from ..models import ConstraintKind, Operation, OperationKind, TransactionTokenKind
from .sql_extractor import SqlExtractor
from .sql_patterns import get_sql_helper_patterns, is_volatile_expression
from .tracking import ExtractionBuilder

logger = logging.getLogger(__name__)

# Position of the table argument in op.* calls; batch_op.* calls omit it
TABLE_ARG_INDEX = {
    "add_column": 0,
    "drop_column": 0,
    "alter_column": 0,
}
DEFAULT_TABLE_ARG_INDEX = 1

# Context managers that open an explicit transaction
TRANSACTION_WRAPPERS = ("begin", "begin_transaction")

# Helpers whose calls are never operations on their own
IGNORED_OP_METHODS = ("f", "get_bind", "get_context", "inline_literal", "batch_alter_table")


class AlembicOperationVisitor(ast.NodeVisitor):
    """AST visitor for extracting operations from an Alembic ``upgrade()``."""

    def __init__(self, builder: ExtractionBuilder, sql_extractor: SqlExtractor):
        self.builder = builder
        self.sql_extractor = sql_extractor
        self.context: dict[str, Any] = {}  # Context for variables
        self.batch_context: dict[str, str] = {}  # batch_op -> table_name
        self.transaction_depth = 0

    def visit_upgrade(self, node: ast.FunctionDef):
        """Process upgrade() function body."""
        for stmt in node.body:
            self.visit(stmt)

    def visit_Assign(self, node: ast.Assign):
        """Process assignments to save variable context."""
        for target in node.targets:
            if isinstance(target, ast.Name):
                value = safe_eval_string(node.value, self.context)
                if value is not None:
                    self.context[target.id] = value
                else:
                    bool_value = safe_eval_bool(node.value, self.context)
                    if bool_value is not None:
                        self.context[target.id] = bool_value

    def visit_Expr(self, node: ast.Expr):
        """Process expressions (function calls)."""
        if isinstance(node.value, ast.Call):
            self.visit_Call(node.value)

    def visit_Call(self, node: ast.Call):
        """Process op.* and batch_op.* calls.

        Arguments are not visited: nested calls such as ``op.f("ix")`` are
        values, not operations.
        """
        if not isinstance(node.func, ast.Attribute) or not isinstance(node.func.value, ast.Name):
            return

        owner = node.func.value.id
        method = node.func.attr
        if owner == "op":
            self._handle_op_call(node, method)
        elif owner in self.batch_context:
            self._handle_op_call(self._with_table_arg(node, method, self.batch_context[owner]), method)

    def visit_With(self, node: ast.With):
        """Process with blocks: batch_alter_table and transaction wrappers."""
        batch_vars = []
        wrappers = []
        for item in node.items:
            expr = item.context_expr
            if not isinstance(expr, ast.Call) or not isinstance(expr.func, ast.Attribute):
                continue

            if expr.func.attr in TRANSACTION_WRAPPERS:
                logger.debug(f"Transaction wrapper found: {source_segment(expr)}")
                wrappers.append(source_segment(expr))
            elif (
                expr.func.attr == "batch_alter_table"
                and isinstance(expr.func.value, ast.Name)
                and expr.func.value.id == "op"
            ):
                table = extract_arg(expr, 0, "table_name", self.context)
                if table and isinstance(item.optional_vars, ast.Name):
                    self.batch_context[item.optional_vars.id] = table
                    batch_vars.append(item.optional_vars.id)

        # The transaction spans the outermost wrapper body only
        opens_transaction = bool(wrappers) and self.transaction_depth == 0
        if opens_transaction:
            self.builder.add_token(TransactionTokenKind.BEGIN, f"with {wrappers[0]}")
        if wrappers:
            self.transaction_depth += 1

        for stmt in node.body:
            self.visit(stmt)

        if wrappers:
            self.transaction_depth -= 1
        if opens_transaction:
            self.builder.add_token(TransactionTokenKind.COMMIT, f"end of with {wrappers[0]}")

        # Remove from context after exiting block
        for batch_var in batch_vars:
            self.batch_context.pop(batch_var, None)

    def _with_table_arg(self, call: ast.Call, method: str, table: str) -> ast.Call:
        """Rewrite a batch_op call into the equivalent op call with the table argument."""
        args = list(call.args)
        index = TABLE_ARG_INDEX.get(method, DEFAULT_TABLE_ARG_INDEX)
        if index <= len(args):
            args.insert(index, ast.Constant(value=table))
        return ast.Call(func=call.func, args=args, keywords=call.keywords)

    def _handle_op_call(self, call: ast.Call, method: str):
        """Process op.* method call."""
        if method in IGNORED_OP_METHODS:
            return

        handler = getattr(self, f"_extract_{method}", None)
        if handler is None:
            logger.debug(f"Unrecognized Alembic operation: op.{method}")
            self._unknown(call)
            return
        handler(call)

    def _add(self, **fields) -> Operation:
        operation = Operation(**fields)
        self.builder.add(operation)
        return operation

    def _unknown(self, call: ast.Call):
        self._add(kind=OperationKind.UNKNOWN, statement=source_segment(call))

    def _name_arg(self, call: ast.Call, index: int, name: str) -> Optional[str]:
        """Extract a name argument, unwrapping ``op.f("name")``."""
        node = get_keyword(call, name)
        if node is None and index < len(call.args):
            node = call.args[index]
        if isinstance(node, ast.Call) and call_name(node) == "f" and node.args:
            node = node.args[0]
        return safe_eval_string(node, self.context)

    # Columns

    def _extract_add_column(self, call: ast.Call):
        table = extract_arg(call, 0, "table_name", self.context)
        column_node = get_keyword(call, "column")
        if column_node is None and len(call.args) > 1:
            column_node = call.args[1]
        if not table or call_name(column_node) != "Column":
            self._unknown(call)
            return

        text = source_segment(call)
        column = extract_positional_arg(column_node, 0, self.context)
        nullable = extract_keyword_arg(column_node, "nullable", self.context)
        primary_key = extract_keyword_arg(column_node, "primary_key", self.context) is True

        has_default, volatile = self._column_default(column_node)
        computed = [arg for arg in column_node.args if call_name(arg) == "Computed"]
        generated_stored = any(
            extract_keyword_arg(arg, "persisted", self.context) is not False for arg in computed
        )

        self._add(
            kind=OperationKind.ADD_COLUMN,
            target_table=table,
            column=column,
            has_default=has_default,
            default_is_volatile=volatile,
            pg_version_at_least_11=self.sql_extractor.pg_version_at_least_11,
            has_not_null=nullable is False or primary_key,
            is_generated_stored=generated_stored,
            statement=text,
        )

        for referenced in self._column_references(column_node):
            self._add(
                kind=OperationKind.ADD_CONSTRAINT,
                target_table=table,
                column=column,
                constraint_kind=ConstraintKind.FOREIGN_KEY,
                referenced_table=referenced,
                statement=text,
            )
        if primary_key:
            self._add(
                kind=OperationKind.ADD_CONSTRAINT,
                target_table=table,
                column=column,
                constraint_kind=ConstraintKind.PRIMARY_KEY,
                statement=text,
            )
        elif extract_keyword_arg(column_node, "unique", self.context) is True:
            self._add(
                kind=OperationKind.ADD_CONSTRAINT,
                target_table=table,
                column=column,
                constraint_kind=ConstraintKind.UNIQUE,
                statement=text,
            )

    def _column_default(self, column_node: ast.Call) -> Tuple[bool, bool]:
        """Return (has_default, is_volatile) for a ``sa.Column(...)`` node."""
        # Identity() and Sequence() declare a sequence-backed default
        if any(call_name(arg) in ("Identity", "Sequence") for arg in column_node.args):
            return True, True

        default = get_keyword(column_node, "server_default")
        if default is None or (isinstance(default, ast.Constant) and default.value is None):
            return False, False
        return True, is_volatile_expression(ast.unparse(default))

    def _column_references(self, column_node: ast.Call) -> List[str]:
        tables = []
        for arg in column_node.args:
            if call_name(arg) == "ForeignKey":
                target = extract_positional_arg(arg, 0, self.context)
                if target and "." in target:
                    tables.append(target.rsplit(".", 1)[0])
        return tables

    def _extract_drop_column(self, call: ast.Call):
        table = extract_arg(call, 0, "table_name", self.context)
        column = extract_arg(call, 1, "column_name", self.context)
        if not table:
            self._unknown(call)
            return
        self._add(kind=OperationKind.DROP_COLUMN, target_table=table, column=column, statement=source_segment(call))

    def _extract_alter_column(self, call: ast.Call):
        """Extract alter_column changes.

        One call may carry several changes; each becomes its own operation
        in the order PostgreSQL applies them.
        """
        table = extract_arg(call, 0, "table_name", self.context)
        column = extract_arg(call, 1, "column_name", self.context)
        if not table:
            self._unknown(call)
            return

        text = source_segment(call)
        kinds = []
        if has_keyword(call, "type_"):
            kinds.append(OperationKind.ALTER_COLUMN_TYPE)

        nullable = extract_keyword_arg(call, "nullable", self.context)
        if nullable is False:
            kinds.append(OperationKind.SET_NOT_NULL)
        elif nullable is True:
            kinds.append(OperationKind.DROP_NOT_NULL)

        if has_keyword(call, "server_default"):
            default = get_keyword(call, "server_default")
            if isinstance(default, ast.Constant) and default.value is None:
                kinds.append(OperationKind.DROP_DEFAULT)
            elif isinstance(default, ast.Constant) and default.value is False:
                pass
            else:
                kinds.append(OperationKind.SET_DEFAULT)

        if not kinds and not has_keyword(call, "new_column_name"):
            self._unknown(call)
            return

        for kind in kinds:
            self._add(kind=kind, target_table=table, column=column, statement=text)

        new_name = extract_keyword_arg(call, "new_column_name", self.context)
        if isinstance(new_name, str):
            self._add(
                kind=OperationKind.RENAME_COLUMN,
                target_table=table,
                column=column,
                new_name=new_name,
                statement=text,
            )

    # Indexes

    def _extract_create_index(self, call: ast.Call):
        self._add(
            kind=OperationKind.CREATE_INDEX,
            index_name=self._name_arg(call, 0, "index_name"),
            target_table=extract_arg(call, 1, "table_name", self.context),
            concurrently=extract_keyword_arg(call, "postgresql_concurrently", self.context) is True,
            statement=source_segment(call),
        )

    def _extract_drop_index(self, call: ast.Call):
        self._add(
            kind=OperationKind.DROP_INDEX,
            index_name=self._name_arg(call, 0, "index_name"),
            target_table=extract_arg(call, 1, "table_name", self.context),
            concurrently=extract_keyword_arg(call, "postgresql_concurrently", self.context) is True,
            statement=source_segment(call),
        )

    # Tables

    def _extract_create_table(self, call: ast.Call):
        table = extract_arg(call, 0, "table_name", self.context)
        if not table:
            self._unknown(call)
            return

        references: List[str] = []
        for arg in call.args[1:]:
            if call_name(arg) == "Column":
                found = self._column_references(arg)
            elif call_name(arg) == "ForeignKeyConstraint" and len(arg.args) > 1:
                found = self._constraint_references(arg.args[1])
            else:
                found = []
            for name in found:
                if name not in references:
                    references.append(name)

        text = source_segment(call)
        if not references:
            self._add(kind=OperationKind.CREATE_TABLE, target_table=table, statement=text)
        for name in references:
            self._add(kind=OperationKind.CREATE_TABLE, target_table=table, referenced_table=name, statement=text)

    def _constraint_references(self, node: ast.AST) -> List[str]:
        tables = []
        if isinstance(node, (ast.List, ast.Tuple)):
            for element in node.elts:
                target = safe_eval_string(element, self.context)
                if target and "." in target:
                    tables.append(target.rsplit(".", 1)[0])
        return tables

    def _extract_drop_table(self, call: ast.Call):
        table = extract_arg(call, 0, "table_name", self.context)
        if not table:
            self._unknown(call)
            return
        self._add(kind=OperationKind.DROP_TABLE, target_table=table, statement=source_segment(call))

    def _extract_rename_table(self, call: ast.Call):
        old = extract_arg(call, 0, "old_table_name", self.context)
        new = extract_arg(call, 1, "new_table_name", self.context)
        if not old:
            self._unknown(call)
            return
        self._add(kind=OperationKind.RENAME_TABLE, target_table=old, new_name=new, statement=source_segment(call))

    # Constraints

    def _extract_create_foreign_key(self, call: ast.Call):
        self._add(
            kind=OperationKind.ADD_CONSTRAINT,
            constraint_kind=ConstraintKind.FOREIGN_KEY,
            constraint_name=self._name_arg(call, 0, "constraint_name"),
            target_table=extract_arg(call, 1, "source_table", self.context),
            referenced_table=extract_arg(call, 2, "referent_table", self.context),
            has_not_valid=extract_keyword_arg(call, "postgresql_not_valid", self.context) is True,
            statement=source_segment(call),
        )

    def _extract_create_check_constraint(self, call: ast.Call):
        condition = extract_arg(call, 2, "condition", self.context)
        column = None
        if condition:
            match = get_sql_helper_patterns()["check_is_not_null"].match(f"({condition})")
            if match:
                column = match.group("column").strip('"')
        self._add(
            kind=OperationKind.ADD_CONSTRAINT,
            constraint_kind=ConstraintKind.CHECK,
            constraint_name=self._name_arg(call, 0, "constraint_name"),
            target_table=extract_arg(call, 1, "table_name", self.context),
            column=column,
            has_not_valid=extract_keyword_arg(call, "postgresql_not_valid", self.context) is True,
            statement=source_segment(call),
        )

    def _add_index_constraint(self, call: ast.Call, kind: ConstraintKind):
        self._add(
            kind=OperationKind.ADD_CONSTRAINT,
            constraint_kind=kind,
            constraint_name=self._name_arg(call, 0, "constraint_name"),
            target_table=extract_arg(call, 1, "table_name", self.context),
            statement=source_segment(call),
        )

    def _extract_create_unique_constraint(self, call: ast.Call):
        self._add_index_constraint(call, ConstraintKind.UNIQUE)

    def _extract_create_primary_key(self, call: ast.Call):
        self._add_index_constraint(call, ConstraintKind.PRIMARY_KEY)

    def _extract_create_exclude_constraint(self, call: ast.Call):
        self._add_index_constraint(call, ConstraintKind.EXCLUDE)

    def _extract_drop_constraint(self, call: ast.Call):
        self._add(
            kind=OperationKind.DROP_CONSTRAINT,
            constraint_name=self._name_arg(call, 0, "constraint_name"),
            target_table=extract_arg(call, 1, "table_name", self.context),
            statement=source_segment(call),
        )

    # Raw SQL

    def _extract_execute(self, call: ast.Call):
        """Delegate ``op.execute("...")`` / ``op.execute(sa.text("..."))`` to the SQL extractor."""
        node = get_keyword(call, "sqltext")
        if node is None and call.args:
            node = call.args[0]
        if isinstance(node, ast.Call) and call_name(node) == "text" and node.args:
            node = node.args[0]

        sql = safe_eval_string(node, self.context)
        if sql is None:
            logger.debug("op.execute() with dynamic SQL")
            self._unknown(call)
            return
        self.sql_extractor.extract_into(sql, self.builder)


class AlembicExtractor(OperationExtractor):
    """Extractor for Alembic migrations.

    Uses AST analysis of ``upgrade()``; code is not executed.

    Example:
        >>> src = '''
        ... def upgrade():
        ...     op.add_column("users", sa.Column("email", sa.String(), nullable=False))
        ... '''
        >>> ops = AlembicExtractor().extract(src).operations
        >>> ops[0].kind, ops[0].target_table, ops[0].has_not_null
        (<OperationKind.ADD_COLUMN: 'add_column'>, 'users', True)
    """

    dialect = "alembic"

    def __init__(self, pg_version: Optional[int] = None):
        self.pg_version = pg_version

    def extract(self, content: str) -> ExtractionResult:
        try:
            tree = ast.parse(content)
        except SyntaxError as e:
            raise ExtractionError(f"Invalid Python syntax at line {e.lineno}: {e.msg}") from e

        builder = ExtractionBuilder()
        visitor = AlembicOperationVisitor(builder, SqlExtractor(pg_version=self.pg_version))

        # Find upgrade() function
        for node in tree.body:
            if isinstance(node, ast.FunctionDef) and node.name == "upgrade":
                visitor.visit_upgrade(node)
                break
        else:
            logger.warning("No upgrade() function found in Alembic migration")

        return builder.finish()
