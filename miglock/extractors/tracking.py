"""Collects extracted operations and applies unit-wide facts to them.

Some attributes of an operation depend on what happened earlier in the same
migration: a table created a few statements above is new, an index created
above tells which table ``DROP INDEX`` touches, a validated
``CHECK (col IS NOT NULL)`` above lets ``SET NOT NULL`` skip its scan.
Every extractor feeds an ``ExtractionBuilder`` and calls ``finish()``.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from ..base import ExtractionResult
from ..models import ConstraintKind, Operation, OperationKind, TransactionToken, TransactionTokenKind

logger = logging.getLogger(__name__)


class ExtractionBuilder:
    """Accumulates operations and transaction tokens in source order."""

    def __init__(self) -> None:
        self.operations: List[Operation] = []
        self.tokens: List[TransactionToken] = []

    def add(self, operation: Operation) -> None:
        self.operations.append(operation)

    def extend(self, operations: List[Operation]) -> None:
        self.operations.extend(operations)

    def add_token(self, kind: TransactionTokenKind, text: str) -> None:
        """Record a transaction marker at the current operation position."""
        self.tokens.append(TransactionToken(kind=kind, text=text, position=len(self.operations)))

    def finish(self) -> ExtractionResult:
        TableTracker().apply(self.operations)
        return ExtractionResult(operations=self.operations, transaction_tokens=self.tokens)


class TableTracker:
    """Derives unit-wide facts and writes them onto operations in place."""

    def __init__(self) -> None:
        self._created: Set[str] = set()
        self._index_tables: Dict[str, str] = {}
        self._validated_not_null_checks: Set[Tuple[str, str]] = set()
        self._pending_checks: Dict[str, Tuple[str, str]] = {}

    def apply(self, operations: List[Operation]) -> None:
        for position, operation in enumerate(operations):
            operation.position = position
            self._resolve_index_table(operation)

            if operation.kind == OperationKind.CREATE_TABLE:
                operation.is_new_table = True
            elif self._is_created(operation.target_table):
                operation.is_new_table = True

            if self._is_created(operation.referenced_table) or self._is_self_reference(operation):
                operation.referenced_is_new_table = True

            self._track(operation)

    def _is_created(self, table: Optional[str]) -> bool:
        return table is not None and table in self._created

    def _is_self_reference(self, operation: Operation) -> bool:
        return operation.kind == OperationKind.CREATE_TABLE and operation.referenced_table == operation.target_table

    def _resolve_index_table(self, operation: Operation) -> None:
        if operation.kind not in (OperationKind.DROP_INDEX, OperationKind.REINDEX):
            return
        if operation.target_table is None and operation.index_name in self._index_tables:
            operation.target_table = self._index_tables[operation.index_name]
            logger.debug(f"Resolved index {operation.index_name} to table {operation.target_table}")

    def _track(self, operation: Operation) -> None:
        kind = operation.kind
        table = operation.target_table

        if kind == OperationKind.CREATE_TABLE and table:
            self._created.add(table)
        elif kind == OperationKind.RENAME_TABLE and operation.is_new_table and operation.new_name:
            self._created.add(operation.new_name)
        elif kind == OperationKind.CREATE_INDEX and operation.index_name and table:
            self._index_tables[operation.index_name] = table
        elif kind == OperationKind.ADD_CONSTRAINT and operation.constraint_kind == ConstraintKind.CHECK:
            self._track_check(operation)
        elif kind == OperationKind.VALIDATE_CONSTRAINT and operation.constraint_name in self._pending_checks:
            self._validated_not_null_checks.add(self._pending_checks.pop(operation.constraint_name))
        elif kind == OperationKind.SET_NOT_NULL and table and operation.column:
            if (table, operation.column) in self._validated_not_null_checks:
                operation.has_existing_check_constraint = True

    def _track_check(self, operation: Operation) -> None:
        # column is only set for checks of the exact form (col IS NOT NULL)
        if not operation.target_table or not operation.column:
            return
        key = (operation.target_table, operation.column)
        if not operation.has_not_valid:
            self._validated_not_null_checks.add(key)
        elif operation.constraint_name:
            self._pending_checks[operation.constraint_name] = key
