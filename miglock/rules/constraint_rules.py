"""Rules for adding and validating constraints."""

import logging
from typing import List

from ..models import ConstraintKind, LockDuration, LockType, Operation, OperationKind, TableImpact
from .base import Rule

logger = logging.getLogger(__name__)


class AddConstraintRule(Rule):
    """ADD CONSTRAINT.

    Foreign keys take SHARE ROW EXCLUSIVE on both the altered and the
    referenced table until commit; NOT VALID skips the row scan but the
    reference is still registered, so it does not shorten the lock.
    Other constraints take ACCESS EXCLUSIVE, held while existing rows are
    validated unless NOT VALID is given or an existing index is attached.
    """

    name = "add_constraint"
    kinds = (OperationKind.ADD_CONSTRAINT,)

    def classify(self, operation: Operation) -> List[TableImpact]:
        if operation.constraint_kind == ConstraintKind.FOREIGN_KEY:
            return self._classify_foreign_key(operation)

        if operation.constraint_kind is None:
            logger.debug(f"Constraint kind missing for operation {operation.position}, assuming validation")

        if operation.has_not_valid:
            duration = LockDuration.INSTANT
        elif operation.uses_existing_index and operation.constraint_kind in (
            ConstraintKind.UNIQUE,
            ConstraintKind.PRIMARY_KEY,
        ):
            duration = LockDuration.INSTANT
        else:
            duration = LockDuration.DURING_VALIDATION
        return self._altered(operation, LockType.ACCESS_EXCLUSIVE, duration)

    def _classify_foreign_key(self, operation: Operation) -> List[TableImpact]:
        lock, duration = LockType.SHARE_ROW_EXCLUSIVE, LockDuration.UNTIL_COMMIT
        return self._altered(operation, lock, duration) + self._referenced(operation, lock, duration)


class ValidateConstraintRule(Rule):
    """VALIDATE CONSTRAINT scans rows under SHARE UPDATE EXCLUSIVE."""

    name = "validate_constraint"
    kinds = (OperationKind.VALIDATE_CONSTRAINT,)

    def classify(self, operation: Operation) -> List[TableImpact]:
        return self._altered(operation, LockType.SHARE_UPDATE_EXCLUSIVE, LockDuration.DURING_VALIDATION)
