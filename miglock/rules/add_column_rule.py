"""Rule for ADD COLUMN."""

from typing import List

from ..models import LockDuration, LockType, Operation, OperationKind, TableImpact
from .base import Rule


def requires_rewrite(operation: Operation) -> bool:
    """Whether adding the column rewrites the table.

    PostgreSQL 11+ stores a non-volatile default in the catalog, so only a
    volatile default, any default on older servers, a NOT NULL column that
    has no default to fill existing rows, or a stored generated column
    needs every row rewritten.

    Example:
        >>> requires_rewrite(Operation(kind=OperationKind.ADD_COLUMN, has_not_null=True))
        True
        >>> requires_rewrite(Operation(kind=OperationKind.ADD_COLUMN, has_not_null=True, has_default=True))
        False
    """
    return (
        operation.default_is_volatile
        or (operation.has_default and not operation.pg_version_at_least_11)
        or (operation.has_not_null and not operation.has_default)
        or operation.is_generated_stored
    )


class AddColumnRule(Rule):
    """ADD COLUMN takes ACCESS EXCLUSIVE, held through a rewrite when one is needed."""

    name = "add_column"
    kinds = (OperationKind.ADD_COLUMN,)

    def classify(self, operation: Operation) -> List[TableImpact]:
        duration = LockDuration.DURING_REWRITE if requires_rewrite(operation) else LockDuration.INSTANT
        return self._altered(operation, LockType.ACCESS_EXCLUSIVE, duration)
