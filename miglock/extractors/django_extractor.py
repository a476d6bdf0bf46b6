"""Extractor for Django migrations."""

import ast
import logging
from typing import Any, Dict, List, Optional

from ..ast_utils import safe_eval_bool, safe_eval_string
from ..base import ExtractionResult, OperationExtractor
from ..exceptions import ExtractionError
from ..models import TransactionTokenKind
from .django_converter import DjangoOperationConverter
from .sql_extractor import SqlExtractor
from .tracking import ExtractionBuilder

logger = logging.getLogger(__name__)


def find_migration_class(tree: ast.Module) -> Optional[ast.ClassDef]:
    """Find the Migration class at module top level.

    Django migrations inherit from ``migrations.Migration`` or an imported
    ``Migration``.
    """
    for node in tree.body:
        if not isinstance(node, ast.ClassDef):
            continue
        for base in node.bases:
            if isinstance(base, ast.Attribute) and base.attr == "Migration":
                return node
            if isinstance(base, ast.Name) and base.id == "Migration":
                return node
    return None


class DjangoExtractor(OperationExtractor):
    """Django migration extractor.

    Reads the ``operations`` list of the Migration class via AST; code is
    not executed. Operations that depend on the previous model state
    (AlterField, RunPython, ...) become UNKNOWN.
    """

    dialect = "django"

    def __init__(self, pg_version: Optional[int] = None):
        self.pg_version = pg_version

    def extract(self, content: str) -> ExtractionResult:
        try:
            tree = ast.parse(content)
        except SyntaxError as e:
            raise ExtractionError(f"Invalid Python syntax at line {e.lineno}: {e.msg}") from e

        migration_class = find_migration_class(tree)
        if migration_class is None:
            raise ExtractionError("No Migration class found")

        context = self._extract_context(migration_class)
        builder = ExtractionBuilder()

        # Only an explicit atomic = True counts; Django's implicit default does not
        if context.get("atomic") is True:
            builder.add_token(TransactionTokenKind.WRAPPER, "atomic = True")

        converter = DjangoOperationConverter(builder, SqlExtractor(pg_version=self.pg_version))
        for node in self._extract_operations(migration_class):
            converter.convert(node, context=context)

        return builder.finish()

    def _extract_context(self, migration_class: ast.ClassDef) -> Dict[str, Any]:
        """Extract variable context from migration class.

        Returns:
            Dictionary with variables and their values (strings or boolean values)
        """
        context: Dict[str, Any] = {}

        for item in migration_class.body:
            if isinstance(item, ast.Assign):
                for target in item.targets:
                    if isinstance(target, ast.Name):
                        str_value = safe_eval_string(item.value, context)
                        if str_value is not None:
                            context[target.id] = str_value
                        else:
                            bool_value = safe_eval_bool(item.value, context)
                            if bool_value is not None:
                                context[target.id] = bool_value

        return context

    def _extract_operations(self, migration_class: ast.ClassDef) -> List[ast.expr]:
        """Extract the entries of ``operations`` from the migration class."""
        for item in migration_class.body:
            if not isinstance(item, ast.Assign):
                continue
            for target in item.targets:
                if isinstance(target, ast.Name) and target.id == "operations":
                    if isinstance(item.value, (ast.List, ast.Tuple)):
                        return list(item.value.elts)
                    # not a literal list: reported as one unknown operation
                    logger.debug("operations is not a literal list, value unavailable")
                    return [item.value]
        return []
