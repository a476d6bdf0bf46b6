"""JSON formatter for analysis results output."""

import json
from typing import Any, List

from .. import __version__
from ..models import AnalysisReport, FileAnalysis, RiskLevel, TableImpact
from .base import Formatter


class JsonFormatter(Formatter):
    """JSON formatter for machine-readable output."""

    def format(self, results: List[FileAnalysis]) -> str:
        """Format analysis results as JSON."""
        output: dict[str, Any] = {
            "version": __version__,
            "summary": {
                "total_migrations": len(results),
                "failed": 0,
                "transaction_errors": 0,
                "risk_levels": {level.value: 0 for level in RiskLevel},
            },
            "migrations": [],
        }

        for result in results:
            if not isinstance(result, FileAnalysis):
                raise TypeError(f"result must be FileAnalysis, got {type(result)}")

            entry: dict[str, Any] = {"file": result.file_path, "error": result.error}
            if result.report is not None:
                entry.update(self._report_to_dict(result.report))
                output["summary"]["risk_levels"][result.report.risk_level.value] += 1
                if result.report.transaction_error:
                    output["summary"]["transaction_errors"] += 1
            else:
                output["summary"]["failed"] += 1
            output["migrations"].append(entry)

        return json.dumps(output, ensure_ascii=False, indent=2)

    def format_single(self, report: AnalysisReport) -> str:
        """Format analysis result for a single migration as JSON."""
        return json.dumps(self._report_to_dict(report), ensure_ascii=False, indent=2)

    def _report_to_dict(self, report: AnalysisReport) -> dict[str, Any]:
        """Convert AnalysisReport to dictionary."""
        return {
            "file_name": report.file_name,
            "dialect": report.dialect,
            "operations_count": len(report.operations),
            "tables": [self._impact_to_dict(impact) for impact in report.impacts],
            "risk_level": report.risk_level.value,
            "transaction_error": report.transaction_error,
            "notes": list(report.notes),
        }

    def _impact_to_dict(self, impact: TableImpact) -> dict[str, Any]:
        """Convert TableImpact to dictionary."""
        return {
            "table": impact.table,
            "role": impact.role.value,
            "lock_type": impact.lock_type.value,
            "blocks_reads": impact.blocks_reads,
            "blocks_writes": impact.blocks_writes,
            "duration": impact.duration.value,
        }
