"""Single-migration analysis pipeline.

Source -> extractor -> lock classifier -> transaction analyzer -> risk
aggregator -> notes. Every step is pure: the same content always yields the
same report.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from .base import MigrationSource
from .extractors import get_extractor
from .models import AnalysisReport
from .notes import build_notes
from .risk import aggregate_risk
from .rules import LockClassifier
from .sources import StringMigrationSource, create_migration_source, is_file_source
from .transactions import analyze_transactions

logger = logging.getLogger(__name__)


def analyze_source(
    source: MigrationSource,
    pg_version: Optional[int] = None,
    classifier: Optional[LockClassifier] = None,
) -> AnalysisReport:
    """
    Analyze one migration source.

    Args:
        source: Migration source of any supported dialect
        pg_version: Target PostgreSQL major version; None means 11 or later
        classifier: Lock classifier to use (default rules if not given)

    Returns:
        Report with operations, per-table impacts, risk level and notes

    Raises:
        ExtractionError: If the source cannot be read into operations
        UnsupportedDialectError: If the source dialect has no extractor

    Example:
        >>> source = StringMigrationSource("ALTER TABLE users DROP COLUMN email;", "0002.sql")
        >>> report = analyze_source(source)
        >>> report.risk_level
        <RiskLevel.MEDIUM: 'MEDIUM'>
    """
    dialect = source.get_dialect()
    extractor = get_extractor(dialect, pg_version=pg_version)
    extraction = extractor.extract_source(source)

    if classifier is None:
        classifier = LockClassifier.with_default_rules()

    operations = extraction.operations
    impacts = classifier.classify_all(operations)
    transaction_flag = analyze_transactions(operations, extraction.transaction_tokens)
    risk_level = aggregate_risk(impacts, transaction_flag)

    file_name = str(source.get_file_path()) if is_file_source(source) else source.get_name()
    logger.debug(
        f"{file_name}: {len(operations)} operations, {len(impacts)} impacts, risk {risk_level.value}"
    )

    return AnalysisReport(
        file_name=file_name,
        dialect=dialect,
        operations=operations,
        impacts=impacts,
        risk_level=risk_level,
        notes=build_notes(operations, impacts),
        transaction_flag=transaction_flag,
    )


def analyze_migration(
    content: str,
    filename: str = "<memory>",
    dialect: Optional[str] = None,
    pg_version: Optional[int] = None,
) -> AnalysisReport:
    """
    Analyze migration text.

    The dialect is detected from ``filename`` and ``content`` unless given.
    """
    return analyze_source(StringMigrationSource(content, filename, dialect=dialect), pg_version=pg_version)


def analyze_file(
    path: Union[str, Path],
    dialect: Optional[str] = None,
    pg_version: Optional[int] = None,
    classifier: Optional[LockClassifier] = None,
) -> AnalysisReport:
    """
    Analyze a migration file.

    Raises:
        FileNotFoundError: If the file does not exist
        UnicodeDecodeError: If the file is not UTF-8
    """
    source = create_migration_source(path, dialect=dialect)
    return analyze_source(source, pg_version=pg_version, classifier=classifier)
