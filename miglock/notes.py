"""Factual notes for a migration report.

Every note is a conditional "If X, then Y" statement about PostgreSQL
behavior. Notes never prescribe what to do.
"""

from typing import Dict, List, Sequence, Set

from .models import ConstraintKind, LockType, Operation, OperationKind, TableImpact

NOTE_TEMPLATES = {
    "unknown": "If `{statement}` acquires a lock on an existing table, then that lock is not reflected in the table above.",
    "access_exclusive_queue": (
        "If long-running queries hold locks on `{table}`, then the ACCESS EXCLUSIVE request waits behind them "
        "and every later read and write on `{table}` queues behind it."
    ),
    "share_row_exclusive": (
        "If the transaction holding SHARE ROW EXCLUSIVE on `{table}` stays open, then writes to `{table}` "
        "stay blocked until it commits."
    ),
    "share": "If writes to `{table}` arrive during the index build, then they wait until the build finishes.",
    "share_update_exclusive": (
        "If other DDL or VACUUM runs on `{table}` at the same time, then it waits for the "
        "SHARE UPDATE EXCLUSIVE lock to be released."
    ),
    "invalid_index": "If `{command}` on `{table}` fails, then it leaves an INVALID index behind.",
    "foreign_key_not_valid": (
        "If the foreign key on `{table}` is added NOT VALID, then existing rows are not checked "
        "and `{referenced}` is still locked until commit."
    ),
    "unresolved_index": (
        "If index `{index}` belongs to an existing table, then the lock shown for `{index}` applies to that table."
    ),
    "default_before_11": (
        "If the server runs PostgreSQL older than 11, then adding `{column}` with a DEFAULT rewrites `{table}`."
    ),
}


def _operation_notes(operation: Operation) -> List[str]:
    notes: List[str] = []
    table = operation.target_table or operation.index_name or "unknown"

    if operation.kind == OperationKind.UNKNOWN:
        notes.append(NOTE_TEMPLATES["unknown"].format(statement=operation.statement or "<unrecognized>"))
        return notes

    if operation.is_new_table and operation.kind != OperationKind.ADD_CONSTRAINT:
        return notes

    if operation.concurrently and operation.kind in (OperationKind.CREATE_INDEX, OperationKind.REINDEX):
        command = "CREATE INDEX CONCURRENTLY" if operation.kind == OperationKind.CREATE_INDEX else "REINDEX CONCURRENTLY"
        notes.append(NOTE_TEMPLATES["invalid_index"].format(command=command, table=table))

    if (
        operation.kind == OperationKind.ADD_CONSTRAINT
        and operation.constraint_kind == ConstraintKind.FOREIGN_KEY
        and operation.has_not_valid
        and operation.referenced_table
        and not operation.referenced_is_new_table
    ):
        notes.append(
            NOTE_TEMPLATES["foreign_key_not_valid"].format(table=table, referenced=operation.referenced_table)
        )

    if operation.kind in (OperationKind.DROP_INDEX, OperationKind.REINDEX) and operation.target_table is None:
        notes.append(NOTE_TEMPLATES["unresolved_index"].format(index=operation.index_name or "unknown"))

    if (
        operation.kind == OperationKind.ADD_COLUMN
        and operation.has_default
        and not operation.pg_version_at_least_11
    ):
        notes.append(NOTE_TEMPLATES["default_before_11"].format(column=operation.column or "column", table=table))

    return notes


def _impact_notes(impact: TableImpact, queued_tables: Set[str]) -> List[str]:
    if impact.lock_type == LockType.ACCESS_EXCLUSIVE:
        # once per table
        if impact.table in queued_tables:
            return []
        queued_tables.add(impact.table)
        return [NOTE_TEMPLATES["access_exclusive_queue"].format(table=impact.table)]
    if impact.lock_type == LockType.SHARE_ROW_EXCLUSIVE:
        return [NOTE_TEMPLATES["share_row_exclusive"].format(table=impact.table)]
    if impact.lock_type == LockType.SHARE:
        return [NOTE_TEMPLATES["share"].format(table=impact.table)]
    if impact.lock_type == LockType.SHARE_UPDATE_EXCLUSIVE:
        return [NOTE_TEMPLATES["share_update_exclusive"].format(table=impact.table)]
    return []


def build_notes(operations: Sequence[Operation], impacts: Sequence[TableImpact]) -> List[str]:
    """Build the ordered, de-duplicated notes for one migration unit.

    Notes follow source order: for each operation, its own notes come first,
    then the notes of the impacts it produced.

    Args:
        operations: Operations in source order
        impacts: Impacts produced from ``operations``

    Returns:
        Notes in first-occurrence order
    """
    impacts_by_operation: Dict[int, List[TableImpact]] = {}
    for impact in impacts:
        impacts_by_operation.setdefault(impact.operation_index, []).append(impact)

    notes: List[str] = []
    queued_tables: Set[str] = set()
    for operation in operations:
        notes.extend(_operation_notes(operation))
        for impact in impacts_by_operation.get(operation.position, []):
            notes.extend(_impact_notes(impact, queued_tables))

    return _unique(notes)


def _unique(notes: List[str]) -> List[str]:
    seen: Set[str] = set()
    result = []
    for note in notes:
        if note not in seen:
            seen.add(note)
            result.append(note)
    return result
