"""Base interface for output formatters."""

from abc import ABC, abstractmethod
from typing import List

from ..models import AnalysisReport, FileAnalysis


class Formatter(ABC):
    """Abstract class for rendering analysis results.

    Formatters are stateless: the same input always renders the same text.
    """

    def notes_for(self, report: AnalysisReport) -> List[str]:
        """Notes to render, with the transaction conflict error first when present."""
        notes = list(report.notes)
        if report.transaction_error:
            notes.insert(0, f"Error: {report.transaction_error}")
        return notes

    @abstractmethod
    def format(self, results: List[FileAnalysis]) -> str:
        """
        Format results for a batch of files.

        Args:
            results: Per-file results in input order

        Returns:
            Formatted string
        """
        pass

    @abstractmethod
    def format_single(self, report: AnalysisReport) -> str:
        """
        Format the report of a single migration.

        Args:
            report: Analysis report

        Returns:
            Formatted string
        """
        pass
