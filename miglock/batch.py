"""Batch analysis of many migration files."""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Sequence, Union

from .analyzer import analyze_file
from .exceptions import MiglockError
from .models import FileAnalysis
from .rules import LockClassifier

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4


def handle_analysis_error(file_path: Path, error: Exception) -> str:
    """
    Unified error handling for file analysis.

    Expected per-file problems (unreadable files, malformed migrations,
    unsupported dialects) are logged as warnings; anything else is logged
    with its traceback.

    Returns:
        Error message recorded for the file
    """
    if isinstance(error, FileNotFoundError):
        message = f"File not found: {file_path}"
        logger.warning(message)
    elif isinstance(error, (MiglockError, UnicodeDecodeError, OSError)):
        message = str(error)
        logger.warning(f"Error analyzing {file_path}: {error}")
    else:
        message = f"Unexpected error: {error}"
        logger.exception(f"Unexpected error analyzing {file_path}")
    return message


def _analyze_one(
    path: Path, dialect: Optional[str], pg_version: Optional[int], classifier: LockClassifier
) -> FileAnalysis:
    try:
        report = analyze_file(path, dialect=dialect, pg_version=pg_version, classifier=classifier)
    except Exception as e:
        return FileAnalysis(file_path=str(path), error=handle_analysis_error(path, e))
    return FileAnalysis(file_path=str(path), report=report)


def analyze_files(
    paths: Sequence[Union[str, Path]],
    workers: int = DEFAULT_WORKERS,
    dialect: Optional[str] = None,
    pg_version: Optional[int] = None,
) -> list[FileAnalysis]:
    """
    Analyze migration files in parallel.

    Each file is an independent unit: a failure in one file becomes that
    entry's ``error`` and does not stop the others. Results keep the order
    of ``paths`` regardless of completion order.

    Args:
        paths: Migration files
        workers: Maximum number of files analyzed at once
        dialect: Force a dialect for every file
        pg_version: Target PostgreSQL major version

    Returns:
        One FileAnalysis per path, in input order

    Raises:
        ValueError: If workers is less than 1
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    file_paths = [Path(p) for p in paths]
    if not file_paths:
        return []

    # Rules are stateless, one classifier is shared by all workers
    classifier = LockClassifier.with_default_rules()

    with ThreadPoolExecutor(max_workers=min(workers, len(file_paths))) as executor:
        results = list(
            executor.map(lambda path: _analyze_one(path, dialect, pg_version, classifier), file_paths)
        )

    failed = sum(1 for result in results if not result.ok)
    if failed:
        logger.warning(f"{failed} of {len(results)} files could not be analyzed")
    return results
