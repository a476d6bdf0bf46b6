"""Markdown formatter producing the lock analysis report."""

from typing import List

from ..models import AnalysisReport, FileAnalysis, TableImpact
from .base import Formatter

TABLE_HEADER = "| Table | Lock Type | Blocks Reads | Blocks Writes | Duration |"
TABLE_SEPARATOR = "|-------|-----------|--------------|---------------|----------|"
NO_TABLES_SENTINEL = "No existing tables affected."
NO_NOTES_SENTINEL = "None."
NO_FILES_SENTINEL = "No migration files to analyze."
FILE_SEPARATOR = "\n\n---\n\n"


def yes_no(value: bool) -> str:
    return "Yes" if value else "No"


class MarkdownFormatter(Formatter):
    """Markdown formatter for pull request comments.

    The headings, column names, Yes/No cells and duration wording are fixed
    so consumers can parse the output.

    Example:
        >>> print(MarkdownFormatter().format_single(AnalysisReport(file_name="a.sql", dialect="sql")))
        ## Migration Lock Analysis
        <BLANKLINE>
        ### Tables Affected
        <BLANKLINE>
        No existing tables affected.
        <BLANKLINE>
        ### Risk Assessment
        <BLANKLINE>
        **Risk Level:** LOW
        <BLANKLINE>
        ### Notes
        <BLANKLINE>
        None.
    """

    def format(self, results: List[FileAnalysis]) -> str:
        """Format results for multiple files, separated by horizontal rules."""
        if not results:
            return NO_FILES_SENTINEL

        sections = []
        for result in results:
            header = f"### 📄 `{result.file_path}`\n\n"
            if result.report is not None:
                sections.append(header + self.format_single(result.report))
            else:
                sections.append(header + f"❌ Error: {result.error}")
        return FILE_SEPARATOR.join(sections)

    def format_single(self, report: AnalysisReport) -> str:
        """Format analysis result for a single migration."""
        lines = ["## Migration Lock Analysis", "", "### Tables Affected", ""]

        if report.impacts:
            lines.append(TABLE_HEADER)
            lines.append(TABLE_SEPARATOR)
            lines.extend(self._format_row(impact) for impact in report.impacts)
        else:
            lines.append(NO_TABLES_SENTINEL)

        lines.extend(["", "### Risk Assessment", "", f"**Risk Level:** {report.risk_level.value}", "", "### Notes", ""])

        notes = self.notes_for(report)
        if notes:
            lines.extend(f"- {note}" for note in notes)
        else:
            lines.append(NO_NOTES_SENTINEL)

        return "\n".join(lines)

    def _format_row(self, impact: TableImpact) -> str:
        table = impact.table.replace("|", "\\|")
        return (
            f"| {table} | {impact.lock_type.value} | {yes_no(impact.blocks_reads)} | "
            f"{yes_no(impact.blocks_writes)} | {impact.duration.value} |"
        )
