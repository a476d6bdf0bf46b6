"""Tests for data models."""

import pytest
from pydantic import ValidationError

from miglock.models import (
    AnalysisReport,
    FileAnalysis,
    LockDuration,
    LockType,
    Operation,
    OperationKind,
    RiskLevel,
    TableImpact,
    TransactionFlag,
)


def test_operation_defaults():
    """Check that bag attributes default to their neutral values."""
    op = Operation(kind=OperationKind.ADD_COLUMN, target_table="users")

    assert op.is_new_table is False
    assert op.concurrently is False
    assert op.has_default is False
    assert op.pg_version_at_least_11 is True
    assert op.constraint_kind is None
    assert op.position == 0


def test_operation_rejects_negative_position():
    with pytest.raises(ValidationError):
        Operation(kind=OperationKind.DROP_TABLE, target_table="users", position=-1)


def test_operation_kind_accepts_string_value():
    op = Operation(kind="drop_column", target_table="users")

    assert op.kind == OperationKind.DROP_COLUMN


@pytest.mark.parametrize(
    "lock_type, blocks_reads, blocks_writes",
    [
        (LockType.ACCESS_EXCLUSIVE, True, True),
        (LockType.SHARE_ROW_EXCLUSIVE, False, True),
        (LockType.SHARE, False, True),
        (LockType.SHARE_UPDATE_EXCLUSIVE, False, False),
        (LockType.NONE, False, False),
    ],
)
def test_impact_blocking_follows_lock_type(lock_type, blocks_reads, blocks_writes):
    """Check that blocks_reads/blocks_writes are derived from the lock type."""
    impact = TableImpact(table="users", lock_type=lock_type, duration=LockDuration.INSTANT)

    assert impact.blocks_reads is blocks_reads
    assert impact.blocks_writes is blocks_writes


def test_impact_dump_includes_derived_fields():
    impact = TableImpact(table="users", lock_type=LockType.SHARE, duration=LockDuration.DURING_INDEX_BUILD)

    data = impact.model_dump()

    assert data["blocks_reads"] is False
    assert data["blocks_writes"] is True


def test_lock_values_render_as_postgresql_spells_them():
    assert LockType.ACCESS_EXCLUSIVE.value == "ACCESS EXCLUSIVE"
    assert LockType.SHARE_UPDATE_EXCLUSIVE.value == "SHARE UPDATE EXCLUSIVE"
    assert LockDuration.UNTIL_COMMIT.value == "Until transaction commits"
    assert LockDuration.DURING_REWRITE.value == "During table rewrite"


def test_risk_levels_are_ordered():
    assert RiskLevel.LOW < RiskLevel.MEDIUM < RiskLevel.HIGH < RiskLevel.CRITICAL
    assert max([RiskLevel.MEDIUM, RiskLevel.CRITICAL, RiskLevel.LOW]) == RiskLevel.CRITICAL
    assert RiskLevel.HIGH >= RiskLevel.HIGH


def test_report_transaction_error_only_for_conflict():
    clean = AnalysisReport(file_name="a.sql", dialect="sql", transaction_flag=TransactionFlag(tokens=["BEGIN"]))
    conflict = AnalysisReport(
        file_name="a.sql",
        dialect="sql",
        transaction_flag=TransactionFlag(tokens=["BEGIN"], concurrent_conflict=True, conflicting_operations=[0]),
    )

    assert clean.transaction_error is None
    assert conflict.transaction_error is not None
    assert conflict.transaction_error.startswith("If CONCURRENTLY")


def test_report_unknown_operations():
    report = AnalysisReport(
        file_name="a.sql",
        dialect="sql",
        operations=[
            Operation(kind=OperationKind.DROP_TABLE, target_table="a"),
            Operation(kind=OperationKind.UNKNOWN, statement="GRANT SELECT ON a TO b", position=1),
        ],
    )

    assert [op.position for op in report.unknown_operations] == [1]


def test_file_analysis_ok():
    assert FileAnalysis(file_path="a.sql", report=AnalysisReport(file_name="a.sql", dialect="sql")).ok
    assert not FileAnalysis(file_path="a.sql", error="boom").ok
