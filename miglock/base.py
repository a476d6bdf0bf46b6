"""Base classes for migration sources and operation extractors.

This module contains abstract classes that define the interface
for reading migrations of different dialects (SQL, Alembic, Django,
Sequelize) into structured operations.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from .models import Operation, TransactionToken


class MigrationSource(ABC):
    """Abstract class for migration source.

    Represents a migration data source (file, string, etc.).

    Example:
        class SqlFileSource(MigrationSource):
            def get_content(self) -> str:
                return self.file_content

            def get_dialect(self) -> str:
                return "sql"
    """

    @abstractmethod
    def get_content(self) -> str:
        """Return migration content.

        Returns:
            str: Migration content as a string.
        """
        pass

    @abstractmethod
    def get_dialect(self) -> str:
        """Return migration dialect.

        Returns:
            str: One of "sql", "alembic", "django", "sequelize".
        """
        pass

    @abstractmethod
    def get_file_path(self) -> Optional[Path]:
        """Return path to migration file, or None for in-memory sources."""
        pass

    def get_name(self) -> str:
        """Return display name used in reports."""
        path = self.get_file_path()
        return path.name if path is not None else "<memory>"


class ExtractionResult(BaseModel):
    """Output of an extractor: operations in source order plus transaction markers.

    Attributes:
        operations: Extracted operations, including UNKNOWN ones.
        transaction_tokens: Explicit transaction syntax found in the source.

    Example:
        >>> from miglock.models import Operation, OperationKind
        >>> result = ExtractionResult(
        ...     operations=[Operation(kind=OperationKind.DROP_COLUMN, target_table="users")]
        ... )
        >>> len(result.operations)
        1
        >>> result.transaction_tokens
        []
    """

    operations: List[Operation] = Field(default_factory=list)
    transaction_tokens: List[TransactionToken] = Field(default_factory=list)


class OperationExtractor(ABC):
    """Abstract class for a dialect-specific operation extractor.

    Extractors do syntactic recognition only: they never decide which lock an
    operation takes. Each dialect provides one subclass.

    Example:
        class SqlExtractor(OperationExtractor):
            dialect = "sql"

            def extract(self, content: str) -> ExtractionResult:
                return ExtractionResult(operations=[])
    """

    dialect: str

    def __init_subclass__(cls, **kwargs):
        """Validates that subclass defined the 'dialect' attribute."""
        super().__init_subclass__(**kwargs)
        if not getattr(cls, "dialect", None):
            raise TypeError(f"{cls.__name__} must define 'dialect' attribute")

    @abstractmethod
    def extract(self, content: str) -> ExtractionResult:
        """Extract operations from migration content.

        Args:
            content: Migration source text.

        Returns:
            ExtractionResult with operations in source order.

        Raises:
            ExtractionError: If the content cannot be read at all.
        """
        pass

    def extract_source(self, source: MigrationSource) -> ExtractionResult:
        """Extract operations from a migration source of this extractor's dialect.

        Raises:
            ValueError: If the source dialect does not match.
        """
        if source.get_dialect() != self.dialect:
            raise ValueError(f"Expected {self.dialect} source, got {source.get_dialect()}")
        return self.extract(source.get_content())
