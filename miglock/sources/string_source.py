"""In-memory migration source."""

from pathlib import Path
from typing import Optional

from ..base import MigrationSource
from .detection import detect_dialect


class StringMigrationSource(MigrationSource):
    """Migration source for content that is already in memory.

    Example:
        >>> source = StringMigrationSource("DROP TABLE users;", "0001.sql")
        >>> source.get_dialect()
        'sql'
    """

    def __init__(self, content: str, file_name: str = "<memory>", dialect: Optional[str] = None):
        self._content = content
        self._file_name = file_name
        self._dialect = dialect

    def get_content(self) -> str:
        return self._content

    def get_dialect(self) -> str:
        if self._dialect is None:
            self._dialect = detect_dialect(self._file_name, self._content)
        return self._dialect

    def get_file_path(self) -> Optional[Path]:
        return None

    def get_name(self) -> str:
        return self._file_name
