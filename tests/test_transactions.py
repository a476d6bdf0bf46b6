"""Tests for transaction boundary analysis."""

from miglock.models import Operation, OperationKind, TransactionToken, TransactionTokenKind
from miglock.transactions import analyze_transactions, transaction_blocks


def token(kind, position, text=None):
    return TransactionToken(kind=kind, text=text or kind.value.upper(), position=position)


def concurrent_index(position, table="users"):
    return Operation(kind=OperationKind.CREATE_INDEX, target_table=table, concurrently=True, position=position)


def plain(position, table="users"):
    return Operation(kind=OperationKind.DROP_COLUMN, target_table=table, position=position)


class TestTransactionBlocks:
    """Tests for block reconstruction from tokens."""

    def test_begin_commit(self):
        tokens = [token(TransactionTokenKind.BEGIN, 0), token(TransactionTokenKind.COMMIT, 2)]

        assert transaction_blocks(tokens, 3) == [(0, 2)]

    def test_begin_without_commit_runs_to_end(self):
        assert transaction_blocks([token(TransactionTokenKind.BEGIN, 1)], 4) == [(1, 4)]

    def test_nested_begin_is_ignored(self):
        tokens = [
            token(TransactionTokenKind.BEGIN, 0),
            token(TransactionTokenKind.BEGIN, 1),
            token(TransactionTokenKind.COMMIT, 2),
        ]

        assert transaction_blocks(tokens, 3) == [(0, 2)]

    def test_commit_without_begin_is_ignored(self):
        assert transaction_blocks([token(TransactionTokenKind.COMMIT, 1)], 2) == []

    def test_wrapper_covers_unit(self):
        assert transaction_blocks([token(TransactionTokenKind.WRAPPER, 0)], 5) == [(0, 5)]


def test_no_explicit_syntax_returns_none():
    """Without explicit transaction syntax a CONCURRENTLY operation alone never conflicts."""
    assert analyze_transactions([concurrent_index(0)], []) is None


def test_concurrently_inside_begin_commit_conflicts():
    operations = [concurrent_index(0)]
    tokens = [token(TransactionTokenKind.BEGIN, 0), token(TransactionTokenKind.COMMIT, 1)]

    flag = analyze_transactions(operations, tokens)

    assert flag is not None
    assert flag.explicit_syntax is True
    assert flag.concurrent_conflict is True
    assert flag.conflicting_operations == [0]
    assert flag.tokens == ["BEGIN", "COMMIT"]


def test_concurrently_after_commit_does_not_conflict():
    operations = [plain(0), concurrent_index(1)]
    tokens = [token(TransactionTokenKind.BEGIN, 0), token(TransactionTokenKind.COMMIT, 1)]

    flag = analyze_transactions(operations, tokens)

    assert flag is not None
    assert flag.concurrent_conflict is False
    assert flag.conflicting_operations == []


def test_transaction_without_concurrently_does_not_conflict():
    tokens = [token(TransactionTokenKind.BEGIN, 0), token(TransactionTokenKind.COMMIT, 2)]

    flag = analyze_transactions([plain(0), plain(1, "orders")], tokens)

    assert flag.concurrent_conflict is False


def test_wrapper_conflicts_with_any_concurrently():
    operations = [plain(0), concurrent_index(1)]

    flag = analyze_transactions(operations, [token(TransactionTokenKind.WRAPPER, 0, "atomic = True")])

    assert flag.concurrent_conflict is True
    assert flag.conflicting_operations == [1]
    assert flag.tokens == ["atomic = True"]
