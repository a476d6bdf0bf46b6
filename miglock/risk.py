"""Risk aggregation over table impacts."""

from typing import Iterable, Optional

from .models import LockDuration, LockType, RiskLevel, TableImpact, TransactionFlag


def impact_risk(impact: TableImpact) -> RiskLevel:
    """Risk of a single impact.

    - CRITICAL: the table is rewritten, or scanned for validation under ACCESS EXCLUSIVE
    - HIGH: SHARE ROW EXCLUSIVE or SHARE (writes blocked for the duration)
    - MEDIUM: ACCESS EXCLUSIVE held only for a catalog update
    - LOW: SHARE UPDATE EXCLUSIVE and NONE
    """
    if impact.duration == LockDuration.DURING_REWRITE:
        return RiskLevel.CRITICAL
    if impact.lock_type == LockType.ACCESS_EXCLUSIVE and impact.duration == LockDuration.DURING_VALIDATION:
        return RiskLevel.CRITICAL
    if impact.lock_type in (LockType.SHARE_ROW_EXCLUSIVE, LockType.SHARE):
        return RiskLevel.HIGH
    if impact.lock_type == LockType.ACCESS_EXCLUSIVE:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def aggregate_risk(impacts: Iterable[TableImpact], transaction_flag: Optional[TransactionFlag] = None) -> RiskLevel:
    """Overall risk of a migration unit: the highest impact risk, LOW without impacts.

    A transaction/CONCURRENTLY conflict is a separate error and never raises
    the level; ``transaction_flag`` is accepted so callers pass the whole
    context, and it does not change the result.

    Example:
        >>> aggregate_risk([])
        <RiskLevel.LOW: 'LOW'>
    """
    return max((impact_risk(impact) for impact in impacts), default=RiskLevel.LOW)
