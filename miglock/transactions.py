"""Transaction boundary analysis."""

import logging
from typing import List, Optional, Sequence, Tuple

from .models import Operation, TransactionFlag, TransactionToken, TransactionTokenKind

logger = logging.getLogger(__name__)


def transaction_blocks(tokens: Sequence[TransactionToken], operation_count: int) -> List[Tuple[int, int]]:
    """Return explicit transaction blocks as half-open operation position ranges.

    A BEGIN opens a block that the next COMMIT closes (or the end of the unit
    when none follows); a nested BEGIN inside an open block is ignored, as
    PostgreSQL does. A wrapper covers the whole unit.

    Example:
        >>> tokens = [
        ...     TransactionToken(kind=TransactionTokenKind.BEGIN, text="BEGIN", position=0),
        ...     TransactionToken(kind=TransactionTokenKind.COMMIT, text="COMMIT", position=2),
        ... ]
        >>> transaction_blocks(tokens, 3)
        [(0, 2)]
    """
    blocks: List[Tuple[int, int]] = []
    start: Optional[int] = None

    for token in tokens:
        if token.kind == TransactionTokenKind.WRAPPER:
            blocks.append((0, operation_count))
        elif token.kind == TransactionTokenKind.BEGIN:
            if start is None:
                start = token.position
        elif token.kind == TransactionTokenKind.COMMIT and start is not None:
            blocks.append((start, token.position))
            start = None

    if start is not None:
        blocks.append((start, operation_count))
    return blocks


def analyze_transactions(
    operations: Sequence[Operation], tokens: Sequence[TransactionToken]
) -> Optional[TransactionFlag]:
    """Flag CONCURRENTLY operations placed inside explicit transaction syntax.

    Returns None when the source has no explicit transaction syntax: nothing
    is assumed about implicit transactions a framework may open.

    Args:
        operations: Operations in source order with positions assigned
        tokens: Transaction tokens found by the extractor

    Returns:
        TransactionFlag, or None without explicit transaction syntax
    """
    if not tokens:
        return None

    blocks = transaction_blocks(tokens, len(operations))
    conflicting = [
        operation.position
        for operation in operations
        if operation.concurrently and any(start <= operation.position < end for start, end in blocks)
    ]
    if conflicting:
        logger.debug(f"CONCURRENTLY operations inside a transaction block: {conflicting}")

    return TransactionFlag(
        explicit_syntax=True,
        tokens=[token.text for token in tokens],
        concurrent_conflict=bool(conflicting),
        conflicting_operations=conflicting,
    )
