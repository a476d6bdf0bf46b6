"""Converter for Django migration operations to Operation records."""

import ast
import logging
from typing import Any, List, Optional, Tuple

from ..ast_utils import (
    call_name,
    extract_arg,
    extract_keyword_arg,
    get_keyword,
    has_keyword,
    safe_eval_string,
    source_segment,
)
from ..models import ConstraintKind, Operation, OperationKind
from .sql_extractor import SqlExtractor
from .sql_patterns import is_volatile_expression
from .tracking import ExtractionBuilder

logger = logging.getLogger(__name__)

FOREIGN_KEY_FIELDS = ("ForeignKey", "OneToOneField")
AUTO_FIELDS = ("AutoField", "BigAutoField", "SmallAutoField")
# Database functions from django.contrib.postgres / django.db.models.functions
VOLATILE_DB_FUNCTIONS = ("RandomUUID", "Random")


def model_table(model_name: str) -> str:
    """Approximate table name for a model.

    Note:
        Actual table name in Django may differ (uses model._meta.db_table or
        app_label + lowercase model name). The file alone does not say.
    """
    return model_name.split(".")[-1].lower()


class DjangoOperationConverter:
    """Convert Django operations (AST nodes) to Operation records."""

    def __init__(self, builder: ExtractionBuilder, sql_extractor: SqlExtractor):
        self.builder = builder
        self.sql_extractor = sql_extractor

    def convert(self, node: Any, context: Optional[dict[str, Any]] = None) -> None:
        """Convert one entry of ``Migration.operations`` and add the result to the builder.

        Args:
            node: AST node of the operation, usually ast.Call
            context: Variable context for extracting values
        """
        if context is None:
            context = {}

        if not isinstance(node, ast.Call):
            logger.debug(f"Operation is not a call: {source_segment(node)}")
            self._unknown(node)
            return

        op_name = call_name(node)
        handler = getattr(self, f"convert_{(op_name or '').lower()}", None)
        if handler is None:
            logger.debug(f"Django operation {op_name} has no lock mapping")
            self._unknown(node)
            return
        handler(node, context)

    def _add(self, **fields) -> Operation:
        operation = Operation(**fields)
        self.builder.add(operation)
        return operation

    def _unknown(self, node: ast.AST) -> None:
        self._add(kind=OperationKind.UNKNOWN, statement=source_segment(node))

    def _model(self, call: ast.Call, context: dict[str, Any], index: int = 0, name: str = "model_name") -> Optional[str]:
        model_name = extract_arg(call, index, name, context)
        return model_table(model_name) if model_name else None

    def _field_node(self, call: ast.Call, index: int) -> Optional[ast.expr]:
        node = get_keyword(call, "field")
        if node is None and index < len(call.args):
            node = call.args[index]
        return node

    def _referenced_model(self, field: ast.Call, context: dict[str, Any]) -> Optional[str]:
        """Return the table referenced by a ForeignKey/OneToOneField, or None."""
        if call_name(field) not in FOREIGN_KEY_FIELDS:
            return None
        if extract_keyword_arg(field, "db_constraint", context) is False:
            return None
        target = extract_arg(field, 0, "to", context)
        return model_table(target) if target else None

    # Fields

    def convert_addfield(self, call: ast.Call, context: dict[str, Any]) -> None:
        """Convert AddField(model_name, name, field)."""
        table = self._model(call, context)
        field_name = extract_arg(call, 1, "name", context)
        field = self._field_node(call, 2)
        if not table or not field_name or not isinstance(field, ast.Call):
            self._unknown(call)
            return

        text = source_segment(call)
        field_type = call_name(field)

        if field_type == "ManyToManyField":
            # Creates a join table referencing both sides
            self._add(kind=OperationKind.CREATE_TABLE, target_table=f"{table}_{field_name.lower()}",
                      referenced_table=table, statement=text)
            target = extract_arg(field, 0, "to", context)
            if target and model_table(target) != table:
                self._add(kind=OperationKind.CREATE_TABLE, target_table=f"{table}_{field_name.lower()}",
                          referenced_table=model_table(target), statement=text)
            return

        referenced = self._referenced_model(field, context)
        column = f"{field_name}_id" if field_type in FOREIGN_KEY_FIELDS else field_name

        has_default, volatile = self._field_default(field)
        primary_key = extract_keyword_arg(field, "primary_key", context) is True
        generated = field_type == "GeneratedField" and extract_keyword_arg(field, "db_persist", context) is True

        self._add(
            kind=OperationKind.ADD_COLUMN,
            target_table=table,
            column=column,
            has_default=has_default,
            default_is_volatile=volatile,
            pg_version_at_least_11=self.sql_extractor.pg_version_at_least_11,
            # null=False is the Django default
            has_not_null=extract_keyword_arg(field, "null", context) is not True,
            is_generated_stored=generated,
            statement=text,
        )

        if referenced:
            self._add(
                kind=OperationKind.ADD_CONSTRAINT,
                target_table=table,
                column=column,
                constraint_kind=ConstraintKind.FOREIGN_KEY,
                referenced_table=referenced,
                statement=text,
            )
        if primary_key:
            self._add(kind=OperationKind.ADD_CONSTRAINT, target_table=table, column=column,
                      constraint_kind=ConstraintKind.PRIMARY_KEY, statement=text)
        elif field_type == "OneToOneField" or extract_keyword_arg(field, "unique", context) is True:
            self._add(kind=OperationKind.ADD_CONSTRAINT, target_table=table, column=column,
                      constraint_kind=ConstraintKind.UNIQUE, statement=text)
        elif extract_keyword_arg(field, "db_index", context) is True:
            self._add(kind=OperationKind.CREATE_INDEX, target_table=table, column=column, statement=text)

    def _field_default(self, field: ast.Call) -> Tuple[bool, bool]:
        """Return (has_default, is_volatile) for a field definition."""
        if call_name(field) in AUTO_FIELDS:
            return True, True

        db_default = get_keyword(field, "db_default")
        if db_default is not None:
            volatile = call_name(db_default) in VOLATILE_DB_FUNCTIONS or is_volatile_expression(
                ast.unparse(db_default)
            )
            return True, volatile

        # default= is evaluated once by Django and sent as a constant
        default = get_keyword(field, "default")
        if default is not None and not (isinstance(default, ast.Attribute) and default.attr == "NOT_PROVIDED"):
            return True, False
        return False, False

    def convert_removefield(self, call: ast.Call, context: dict[str, Any]) -> None:
        """Convert RemoveField(model_name, name)."""
        table = self._model(call, context)
        if not table:
            self._unknown(call)
            return
        self._add(kind=OperationKind.DROP_COLUMN, target_table=table,
                  column=extract_arg(call, 1, "name", context), statement=source_segment(call))

    def convert_renamefield(self, call: ast.Call, context: dict[str, Any]) -> None:
        """Convert RenameField(model_name, old_name, new_name)."""
        table = self._model(call, context)
        if not table:
            self._unknown(call)
            return
        self._add(
            kind=OperationKind.RENAME_COLUMN,
            target_table=table,
            column=extract_arg(call, 1, "old_name", context),
            new_name=extract_arg(call, 2, "new_name", context),
            statement=source_segment(call),
        )

    # Models

    def convert_createmodel(self, call: ast.Call, context: dict[str, Any]) -> None:
        """Convert CreateModel(name, fields) to CREATE_TABLE, one per referenced model."""
        table = self._model(call, context, name="name")
        if not table:
            self._unknown(call)
            return

        fields = get_keyword(call, "fields")
        if fields is None and len(call.args) > 1:
            fields = call.args[1]

        references: List[str] = []
        if isinstance(fields, (ast.List, ast.Tuple)):
            for item in fields.elts:
                # fields=[("name", models.Field(...)), ...]
                if isinstance(item, ast.Tuple) and len(item.elts) == 2 and isinstance(item.elts[1], ast.Call):
                    referenced = self._referenced_model(item.elts[1], context)
                    if referenced and referenced not in references:
                        references.append(referenced)

        text = source_segment(call)
        if not references:
            self._add(kind=OperationKind.CREATE_TABLE, target_table=table, statement=text)
        for referenced in references:
            self._add(kind=OperationKind.CREATE_TABLE, target_table=table, referenced_table=referenced, statement=text)

    def convert_deletemodel(self, call: ast.Call, context: dict[str, Any]) -> None:
        """Convert DeleteModel(name)."""
        table = self._model(call, context, name="name")
        if not table:
            self._unknown(call)
            return
        self._add(kind=OperationKind.DROP_TABLE, target_table=table, statement=source_segment(call))

    def convert_renamemodel(self, call: ast.Call, context: dict[str, Any]) -> None:
        """Convert RenameModel(old_name, new_name)."""
        table = self._model(call, context, name="old_name")
        new_name = extract_arg(call, 1, "new_name", context)
        if not table:
            self._unknown(call)
            return
        self._add(
            kind=OperationKind.RENAME_TABLE,
            target_table=table,
            new_name=model_table(new_name) if new_name else None,
            statement=source_segment(call),
        )

    def convert_altermodeltable(self, call: ast.Call, context: dict[str, Any]) -> None:
        """Convert AlterModelTable(name, table), which renames the table via db_table."""
        table = self._model(call, context, name="name")
        if not table:
            self._unknown(call)
            return
        self._add(
            kind=OperationKind.RENAME_TABLE,
            target_table=table,
            new_name=extract_arg(call, 1, "table", context),
            statement=source_segment(call),
        )

    # Indexes

    def _add_index(self, call: ast.Call, context: dict[str, Any], concurrently: bool) -> None:
        table = self._model(call, context)
        index = get_keyword(call, "index")
        if index is None and len(call.args) > 1:
            index = call.args[1]
        index_name = None
        if isinstance(index, ast.Call):
            index_name = extract_keyword_arg(index, "name", context)
        self._add(
            kind=OperationKind.CREATE_INDEX,
            target_table=table,
            index_name=index_name if isinstance(index_name, str) else None,
            concurrently=concurrently,
            statement=source_segment(call),
        )

    def convert_addindex(self, call: ast.Call, context: dict[str, Any]) -> None:
        self._add_index(call, context, concurrently=False)

    def convert_addindexconcurrently(self, call: ast.Call, context: dict[str, Any]) -> None:
        self._add_index(call, context, concurrently=True)

    def _remove_index(self, call: ast.Call, context: dict[str, Any], concurrently: bool) -> None:
        self._add(
            kind=OperationKind.DROP_INDEX,
            target_table=self._model(call, context),
            index_name=extract_arg(call, 1, "name", context),
            concurrently=concurrently,
            statement=source_segment(call),
        )

    def convert_removeindex(self, call: ast.Call, context: dict[str, Any]) -> None:
        self._remove_index(call, context, concurrently=False)

    def convert_removeindexconcurrently(self, call: ast.Call, context: dict[str, Any]) -> None:
        self._remove_index(call, context, concurrently=True)

    # Constraints

    def _add_constraint(self, call: ast.Call, context: dict[str, Any], not_valid: bool) -> None:
        table = self._model(call, context)
        constraint = get_keyword(call, "constraint")
        if constraint is None and len(call.args) > 1:
            constraint = call.args[1]
        if not table or not isinstance(constraint, ast.Call):
            self._unknown(call)
            return

        text = source_segment(call)
        name = extract_keyword_arg(constraint, "name", context)
        name = name if isinstance(name, str) else None
        constraint_type = call_name(constraint)

        if constraint_type == "UniqueConstraint" and (
            has_keyword(constraint, "condition") or has_keyword(constraint, "expressions") or constraint.args
        ):
            # Partial and expression unique constraints are created as unique indexes
            self._add(kind=OperationKind.CREATE_INDEX, target_table=table, index_name=name, statement=text)
            return

        kinds = {
            "CheckConstraint": ConstraintKind.CHECK,
            "UniqueConstraint": ConstraintKind.UNIQUE,
            "ExclusionConstraint": ConstraintKind.EXCLUDE,
        }
        if constraint_type not in kinds:
            self._unknown(call)
            return

        self._add(
            kind=OperationKind.ADD_CONSTRAINT,
            target_table=table,
            constraint_kind=kinds[constraint_type],
            constraint_name=name,
            has_not_valid=not_valid,
            statement=text,
        )

    def convert_addconstraint(self, call: ast.Call, context: dict[str, Any]) -> None:
        self._add_constraint(call, context, not_valid=False)

    def convert_addconstraintnotvalid(self, call: ast.Call, context: dict[str, Any]) -> None:
        self._add_constraint(call, context, not_valid=True)

    def convert_removeconstraint(self, call: ast.Call, context: dict[str, Any]) -> None:
        self._add(
            kind=OperationKind.DROP_CONSTRAINT,
            target_table=self._model(call, context),
            constraint_name=extract_arg(call, 1, "name", context),
            statement=source_segment(call),
        )

    def convert_validateconstraint(self, call: ast.Call, context: dict[str, Any]) -> None:
        self._add(
            kind=OperationKind.VALIDATE_CONSTRAINT,
            target_table=self._model(call, context),
            constraint_name=extract_arg(call, 1, "name", context),
            statement=source_segment(call),
        )

    # Raw SQL and wrappers

    def convert_runsql(self, call: ast.Call, context: dict[str, Any]) -> None:
        """Delegate RunSQL(sql) to the SQL extractor.

        ``sql`` may be a string or a list of strings / ``(sql, params)`` tuples.
        """
        node = get_keyword(call, "sql")
        if node is None and call.args:
            node = call.args[0]

        items = node.elts if isinstance(node, (ast.List, ast.Tuple)) else [node]
        for item in items:
            if isinstance(item, (ast.List, ast.Tuple)) and item.elts:
                item = item.elts[0]
            sql = safe_eval_string(item, context)
            if sql is None:
                logger.debug("RunSQL with dynamic SQL")
                self._unknown(call)
                return
            self.sql_extractor.extract_into(sql, self.builder)

    def convert_separatedatabaseandstate(self, call: ast.Call, context: dict[str, Any]) -> None:
        """Only ``database_operations`` touch the database."""
        operations = get_keyword(call, "database_operations")
        if isinstance(operations, (ast.List, ast.Tuple)):
            for node in operations.elts:
                self.convert(node, context)
