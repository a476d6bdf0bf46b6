"""Migration sources module."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from ..base import MigrationSource
from .detection import JAVASCRIPT_SUFFIXES, PYTHON_SUFFIXES, SQL_SUFFIXES, detect_dialect, detect_python_dialect
from .file_source import FileMigrationSource, is_file_source
from .string_source import StringMigrationSource

logger = logging.getLogger(__name__)

MIGRATION_SUFFIXES = SQL_SUFFIXES + PYTHON_SUFFIXES + JAVASCRIPT_SUFFIXES

__all__ = [
    "FileMigrationSource",
    "StringMigrationSource",
    "MIGRATION_SUFFIXES",
    "create_migration_source",
    "detect_dialect",
    "detect_python_dialect",
    "find_migration_files",
    "is_file_source",
]


def create_migration_source(file_path: Union[str, Path], dialect: Optional[str] = None) -> MigrationSource:
    """Creates a migration source for a file.

    Args:
        file_path: Path to migration file (string or Path object)
        dialect: Force a dialect instead of detecting it

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    return FileMigrationSource(file_path, dialect=dialect)


def _is_excluded(path: Path, exclude: Sequence[str]) -> bool:
    return any(path.match(pattern) or pattern in path.parts for pattern in exclude)


def find_migration_files(paths: Iterable[Union[str, Path]], exclude: Sequence[str] = ()) -> List[Path]:
    """Expands paths into migration files, keeping the given order.

    Files are taken as given; directories are walked for migration suffixes
    (sorted, so numbered migrations stay in order). Python package markers
    (``__init__.py``) are skipped. Paths that do not exist are kept so the
    batch reports them as per-file errors.

    Args:
        paths: Files and directories
        exclude: Glob patterns or directory names to skip

    Example:
        >>> find_migration_files(["migrations/0001.sql"])
        [PosixPath('migrations/0001.sql')]
    """
    files: List[Path] = []
    for item in paths:
        path = Path(item)
        if path.is_dir():
            for candidate in sorted(path.rglob("*")):
                if (
                    candidate.is_file()
                    and candidate.suffix.lower() in MIGRATION_SUFFIXES
                    and candidate.name != "__init__.py"
                    and not _is_excluded(candidate, exclude)
                ):
                    files.append(candidate)
        elif not _is_excluded(path, exclude):
            files.append(path)
        else:
            logger.debug(f"Excluded {path}")

    # Deduplicate while keeping order
    seen = set()
    unique = []
    for path in files:
        if path not in seen:
            seen.add(path)
            unique.append(path)
    return unique
