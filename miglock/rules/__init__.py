"""Lock classification rules module."""

from .add_column_rule import AddColumnRule, requires_rewrite
from .base import Rule
from .constraint_rules import AddConstraintRule, ValidateConstraintRule
from .index_rules import CreateIndexRule, DropIndexRule, ReindexRule
from .rule_engine import LockClassifier
from .table_rules import CreateTableRule, InstantAccessExclusiveRule, SetNotNullRule, TableRewriteRule

__all__ = [
    "Rule",
    "AddColumnRule",
    "AddConstraintRule",
    "ValidateConstraintRule",
    "InstantAccessExclusiveRule",
    "TableRewriteRule",
    "SetNotNullRule",
    "CreateTableRule",
    "CreateIndexRule",
    "DropIndexRule",
    "ReindexRule",
    "LockClassifier",
    "requires_rewrite",
]
