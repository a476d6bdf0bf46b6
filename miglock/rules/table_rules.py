"""Rules for table-level and column-level changes."""

from typing import List

from ..models import LockDuration, LockType, Operation, OperationKind, TableImpact
from .base import Rule


class InstantAccessExclusiveRule(Rule):
    """Catalog-only changes: ACCESS EXCLUSIVE, released as soon as the catalog is updated."""

    name = "instant_access_exclusive"
    kinds = (
        OperationKind.DROP_COLUMN,
        OperationKind.DROP_CONSTRAINT,
        OperationKind.SET_DEFAULT,
        OperationKind.DROP_DEFAULT,
        OperationKind.DROP_NOT_NULL,
        OperationKind.RENAME_COLUMN,
        OperationKind.RENAME_TABLE,
        OperationKind.DROP_TABLE,
    )

    def classify(self, operation: Operation) -> List[TableImpact]:
        return self._altered(operation, LockType.ACCESS_EXCLUSIVE, LockDuration.INSTANT)


class TableRewriteRule(Rule):
    """Changes that rewrite or empty the table under ACCESS EXCLUSIVE."""

    name = "table_rewrite"
    kinds = (
        OperationKind.ALTER_COLUMN_TYPE,
        OperationKind.TRUNCATE,
        OperationKind.VACUUM_FULL,
        OperationKind.CLUSTER,
    )

    def classify(self, operation: Operation) -> List[TableImpact]:
        return self._altered(operation, LockType.ACCESS_EXCLUSIVE, LockDuration.DURING_REWRITE)


class SetNotNullRule(Rule):
    """SET NOT NULL scans the whole table unless a validated IS NOT NULL check proves it."""

    name = "set_not_null"
    kinds = (OperationKind.SET_NOT_NULL,)

    def classify(self, operation: Operation) -> List[TableImpact]:
        if operation.has_existing_check_constraint:
            duration = LockDuration.INSTANT
        else:
            duration = LockDuration.DURING_REWRITE
        return self._altered(operation, LockType.ACCESS_EXCLUSIVE, duration)


class CreateTableRule(Rule):
    """CREATE TABLE locks nothing existing except tables its foreign keys reference."""

    name = "create_table"
    kinds = (OperationKind.CREATE_TABLE,)

    def classify(self, operation: Operation) -> List[TableImpact]:
        return self._referenced(operation, LockType.SHARE_ROW_EXCLUSIVE, LockDuration.UNTIL_COMMIT)
