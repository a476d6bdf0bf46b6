"""miglock - PostgreSQL lock analysis for schema migrations."""

__version__ = "0.1.0"

from .analyzer import analyze_file, analyze_migration, analyze_source  # noqa: E402
from .batch import analyze_files  # noqa: E402
from .models import (  # noqa: E402
    AnalysisReport,
    FileAnalysis,
    LockDuration,
    LockType,
    Operation,
    OperationKind,
    RiskLevel,
    TableImpact,
)

__all__ = [
    "analyze_file",
    "analyze_files",
    "analyze_migration",
    "analyze_source",
    "AnalysisReport",
    "FileAnalysis",
    "LockDuration",
    "LockType",
    "Operation",
    "OperationKind",
    "RiskLevel",
    "TableImpact",
    "__version__",
]
