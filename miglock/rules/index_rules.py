"""Rules for index operations."""

from typing import List

from ..models import LockDuration, LockType, Operation, OperationKind, TableImpact
from .base import Rule


class CreateIndexRule(Rule):
    """CREATE INDEX blocks writes for the whole build; CONCURRENTLY blocks neither reads nor writes."""

    name = "create_index"
    kinds = (OperationKind.CREATE_INDEX,)

    def classify(self, operation: Operation) -> List[TableImpact]:
        if operation.concurrently:
            return self._altered(operation, LockType.SHARE_UPDATE_EXCLUSIVE, LockDuration.DURING_INDEX_BUILD)
        return self._altered(operation, LockType.SHARE, LockDuration.DURING_INDEX_BUILD)


class DropIndexRule(Rule):
    name = "drop_index"
    kinds = (OperationKind.DROP_INDEX,)

    def classify(self, operation: Operation) -> List[TableImpact]:
        if operation.concurrently:
            return self._altered(operation, LockType.SHARE_UPDATE_EXCLUSIVE, LockDuration.DURING_INDEX_BUILD)
        return self._altered(operation, LockType.ACCESS_EXCLUSIVE, LockDuration.INSTANT)


class ReindexRule(Rule):
    name = "reindex"
    kinds = (OperationKind.REINDEX,)

    def classify(self, operation: Operation) -> List[TableImpact]:
        if operation.concurrently:
            return self._altered(operation, LockType.SHARE_UPDATE_EXCLUSIVE, LockDuration.DURING_INDEX_BUILD)
        return self._altered(operation, LockType.ACCESS_EXCLUSIVE, LockDuration.DURING_REWRITE)
