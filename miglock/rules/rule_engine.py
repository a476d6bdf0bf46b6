"""Engine that applies lock classification rules to operations."""

import logging
from typing import Dict, Iterable, List

from ..models import Operation, OperationKind, TableImpact
from .base import Rule

logger = logging.getLogger(__name__)


class LockClassifier:
    """Engine mapping operations to table impacts through registered rules.

    Every operation kind is handled by exactly one rule. UNKNOWN operations
    never produce impacts; they are surfaced as notes instead.

    Example:
        >>> classifier = LockClassifier.with_default_rules()
        >>> impacts = classifier.classify(Operation(kind=OperationKind.DROP_COLUMN, target_table="users"))
        >>> impacts[0].lock_type.value, impacts[0].duration.value
        ('ACCESS EXCLUSIVE', 'Instant')
    """

    def __init__(self) -> None:
        self._rules: List[Rule] = []
        self._rules_by_kind: Dict[OperationKind, Rule] = {}

    def get_rules(self) -> List[Rule]:
        """
        Returns list of all registered rules.

        Returns:
            List of rules (read-only)
        """
        return list(self._rules)

    def add_rule(self, rule: Rule) -> None:
        """
        Adds rule to engine.

        Args:
            rule: Rule to add

        Raises:
            TypeError: If rule is not an instance of Rule
            ValueError: If rule is None or one of its kinds already has a rule
        """
        if rule is None:
            raise ValueError("Rule cannot be None")
        if not isinstance(rule, Rule):
            raise TypeError(f"Rule must be an instance of Rule, got {type(rule)}")
        for kind in rule.kinds:
            if kind in self._rules_by_kind:
                raise ValueError(
                    f"Operation kind {kind.value} is already handled by rule '{self._rules_by_kind[kind].name}'"
                )
        self._rules.append(rule)
        for kind in rule.kinds:
            self._rules_by_kind[kind] = rule

    def classify(self, operation: Operation) -> List[TableImpact]:
        """
        Maps one operation to its table impacts.

        Args:
            operation: Operation to classify

        Returns:
            Impacts of the operation; empty for UNKNOWN and new tables
        """
        if operation.kind == OperationKind.UNKNOWN:
            return []

        rule = self._rules_by_kind.get(operation.kind)
        if rule is None:
            logger.warning(f"No rule registered for operation kind {operation.kind.value}")
            return []

        impacts = rule.classify(operation)
        logger.debug(f"{rule.name}: operation {operation.position} -> {len(impacts)} impact(s)")
        return impacts

    def classify_all(self, operations: Iterable[Operation]) -> List[TableImpact]:
        """
        Classifies all operations, keeping source order.

        Raises:
            TypeError: If operations is a string or not iterable
        """
        if isinstance(operations, (str, bytes)) or not hasattr(operations, "__iter__"):
            raise TypeError(f"operations must be an iterable of Operation, got {type(operations)}")

        impacts: List[TableImpact] = []
        for operation in operations:
            impacts.extend(self.classify(operation))
        return impacts

    @classmethod
    def with_default_rules(cls) -> "LockClassifier":
        """
        Creates engine with the rules for every PostgreSQL operation kind.

        Returns:
            LockClassifier with registered rules
        """
        engine = cls()
        # Import here to avoid circular dependencies
        from .add_column_rule import AddColumnRule
        from .constraint_rules import AddConstraintRule, ValidateConstraintRule
        from .index_rules import CreateIndexRule, DropIndexRule, ReindexRule
        from .table_rules import CreateTableRule, InstantAccessExclusiveRule, SetNotNullRule, TableRewriteRule

        engine.add_rule(AddColumnRule())
        engine.add_rule(AddConstraintRule())
        engine.add_rule(ValidateConstraintRule())
        engine.add_rule(InstantAccessExclusiveRule())
        engine.add_rule(TableRewriteRule())
        engine.add_rule(SetNotNullRule())
        engine.add_rule(CreateTableRule())
        engine.add_rule(CreateIndexRule())
        engine.add_rule(DropIndexRule())
        engine.add_rule(ReindexRule())

        return engine
