"""Base class for lock classification rules."""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from ..models import LockDuration, LockType, Operation, OperationKind, TableImpact, TableRole


class Rule(ABC):
    """Abstract class for lock classification rules.

    Each rule handles a fixed set of operation kinds and maps one operation
    to the table impacts PostgreSQL's locking produces for it. Specific rules
    inherit from this class and implement the classify() method.

    Example:
        class DropColumnRule(Rule):
            name = "drop_column"
            kinds = (OperationKind.DROP_COLUMN,)

            def classify(self, operation: Operation) -> List[TableImpact]:
                return self._altered(operation, LockType.ACCESS_EXCLUSIVE, LockDuration.INSTANT)
    """

    name: str
    kinds: Tuple[OperationKind, ...] = ()

    def __init_subclass__(cls, **kwargs):
        """Validates that subclass defined the 'name' attribute."""
        super().__init_subclass__(**kwargs)
        if not hasattr(cls, "name") or not cls.name:
            raise TypeError(f"{cls.__name__} must define 'name' attribute")

    @abstractmethod
    def classify(self, operation: Operation) -> List[TableImpact]:
        """
        Maps an operation to its table impacts.

        Args:
            operation: Operation of one of ``kinds``

        Returns:
            Impacts in the order the locks are taken; empty when no
            pre-existing table is affected
        """
        pass

    def _impact(
        self,
        operation: Operation,
        lock_type: LockType,
        duration: LockDuration,
        table: Optional[str] = None,
        role: TableRole = TableRole.ALTERED,
    ) -> TableImpact:
        return TableImpact(
            table=table or self._format_table_name(operation),
            role=role,
            lock_type=lock_type,
            duration=duration,
            operation_index=operation.position,
        )

    def _altered(self, operation: Operation, lock_type: LockType, duration: LockDuration) -> List[TableImpact]:
        """Impact on the altered table, or nothing when the table is new."""
        if operation.is_new_table:
            return []
        return [self._impact(operation, lock_type, duration)]

    def _referenced(self, operation: Operation, lock_type: LockType, duration: LockDuration) -> List[TableImpact]:
        """Impact on the referenced table, or nothing when it is new, absent or self-referenced."""
        referenced = operation.referenced_table
        if not referenced or operation.referenced_is_new_table or referenced == operation.target_table:
            return []
        return [self._impact(operation, lock_type, duration, table=referenced, role=TableRole.REFERENCED)]

    def _format_table_name(self, operation: Operation) -> str:
        """Formats table name for the report.

        Returns:
            Table name, the index name when only the index is known, or "unknown"
        """
        return operation.target_table or operation.index_name or "unknown"
