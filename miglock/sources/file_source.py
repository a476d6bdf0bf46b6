"""File-based migration source."""

from pathlib import Path
from typing import Optional, Union

from typing_extensions import TypeGuard

from ..base import MigrationSource
from .detection import detect_dialect


class FileMigrationSource(MigrationSource):
    """Migration source read from a file.

    The dialect is detected from the file name and content unless given.
    """

    def __init__(self, file_path: Union[str, Path], dialect: Optional[str] = None):
        """
        Initializes migration source from file.

        Args:
            file_path: Path to migration file
            dialect: Force a dialect instead of detecting it

        Raises:
            FileNotFoundError: If file doesn't exist
        """
        self._file_path = Path(file_path)
        if not self._file_path.is_file():
            raise FileNotFoundError(f"Migration file not found: {self._file_path}")
        self._dialect = dialect
        self._content: Optional[str] = None

    def get_content(self) -> str:
        """Returns migration file content.

        Raises:
            UnicodeDecodeError: If file cannot be decoded as UTF-8.
                The message names the file.
            OSError: If file reading error occurred
        """
        if self._content is None:
            try:
                self._content = self._file_path.read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                raise UnicodeDecodeError(
                    "utf-8",
                    e.object,
                    e.start,
                    e.end,
                    f"Failed to decode migration file '{self._file_path}' as UTF-8. "
                    f"Error at position {e.start}-{e.end}: {e.reason}.",
                ) from e
        return self._content

    def get_dialect(self) -> str:
        if self._dialect is None:
            self._dialect = detect_dialect(self._file_path.name, self.get_content())
        return self._dialect

    def get_file_path(self) -> Path:
        return self._file_path


def is_file_source(source: MigrationSource) -> TypeGuard[FileMigrationSource]:
    """TypeGuard to check if a migration source is backed by a file."""
    return isinstance(source, FileMigrationSource)
