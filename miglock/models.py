from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field


class OperationKind(str, Enum):
    """Kind of schema change found in a migration."""

    ADD_COLUMN = "add_column"
    DROP_COLUMN = "drop_column"
    ADD_CONSTRAINT = "add_constraint"
    DROP_CONSTRAINT = "drop_constraint"
    SET_DEFAULT = "set_default"
    DROP_DEFAULT = "drop_default"
    DROP_NOT_NULL = "drop_not_null"
    SET_NOT_NULL = "set_not_null"
    ALTER_COLUMN_TYPE = "alter_column_type"
    RENAME_COLUMN = "rename_column"
    RENAME_TABLE = "rename_table"
    CREATE_TABLE = "create_table"
    DROP_TABLE = "drop_table"
    CREATE_INDEX = "create_index"
    DROP_INDEX = "drop_index"
    TRUNCATE = "truncate"
    VACUUM_FULL = "vacuum_full"
    CLUSTER = "cluster"
    REINDEX = "reindex"
    VALIDATE_CONSTRAINT = "validate_constraint"
    UNKNOWN = "unknown"


class ConstraintKind(str, Enum):
    """Table constraint flavour."""

    CHECK = "check"
    UNIQUE = "unique"
    PRIMARY_KEY = "primary_key"
    EXCLUDE = "exclude"
    FOREIGN_KEY = "foreign_key"


class Operation(BaseModel):
    """One DDL action extracted from migration source.

    Only the attributes relevant to ``kind`` are meaningful; the others keep
    their defaults and are ignored by the classifier.
    """

    kind: OperationKind
    target_table: Optional[str] = None
    is_new_table: bool = False
    concurrently: bool = False

    has_default: bool = False
    default_is_volatile: bool = False
    pg_version_at_least_11: bool = True
    has_not_null: bool = False
    is_generated_stored: bool = False
    constraint_kind: Optional[ConstraintKind] = None
    has_not_valid: bool = False
    uses_existing_index: bool = False
    referenced_table: Optional[str] = None
    referenced_is_new_table: bool = False
    has_existing_check_constraint: bool = False

    column: Optional[str] = None
    new_name: Optional[str] = None
    index_name: Optional[str] = None
    constraint_name: Optional[str] = None
    statement: Optional[str] = Field(default=None, description="Short source excerpt for notes")
    position: int = Field(default=0, ge=0, description="Index of the operation in source order")


class LockType(str, Enum):
    """PostgreSQL table lock modes acquired by DDL."""

    ACCESS_EXCLUSIVE = "ACCESS EXCLUSIVE"
    SHARE_ROW_EXCLUSIVE = "SHARE ROW EXCLUSIVE"
    SHARE = "SHARE"
    SHARE_UPDATE_EXCLUSIVE = "SHARE UPDATE EXCLUSIVE"
    NONE = "NONE"

    @property
    def blocks_reads(self) -> bool:
        return self is LockType.ACCESS_EXCLUSIVE

    @property
    def blocks_writes(self) -> bool:
        return self in (LockType.ACCESS_EXCLUSIVE, LockType.SHARE_ROW_EXCLUSIVE, LockType.SHARE)


class LockDuration(str, Enum):
    """How long a lock is held. Values are the rendered wording."""

    INSTANT = "Instant"
    UNTIL_COMMIT = "Until transaction commits"
    DURING_INDEX_BUILD = "During index build"
    DURING_VALIDATION = "During validation"
    DURING_REWRITE = "During table rewrite"


class TableRole(str, Enum):
    """Whether the table is the one being altered or one it references."""

    ALTERED = "altered"
    REFERENCED = "referenced"


class RiskLevel(str, Enum):
    """Aggregate risk, ordered LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class TableImpact(BaseModel):
    """Effect of one operation on one table.

    Attributes:
        table: Table name as written in the migration.
        role: ALTERED for the table the statement changes, REFERENCED for a
            foreign-key target.
        lock_type: Lock mode acquired on ``table``.
        duration: How long the lock is held.
        operation_index: Position of the originating operation in source order.
        blocks_reads: Derived from ``lock_type``.
        blocks_writes: Derived from ``lock_type``.
    """

    table: str
    role: TableRole = TableRole.ALTERED
    lock_type: LockType
    duration: LockDuration
    operation_index: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def blocks_reads(self) -> bool:
        return self.lock_type.blocks_reads

    @computed_field  # type: ignore[prop-decorator]
    @property
    def blocks_writes(self) -> bool:
        return self.lock_type.blocks_writes


class TransactionTokenKind(str, Enum):
    """Explicit transaction syntax found in source."""

    BEGIN = "begin"
    COMMIT = "commit"
    WRAPPER = "wrapper"


class TransactionToken(BaseModel):
    """A raw transaction marker and where it sits relative to operations.

    ``position`` is the number of operations extracted before the marker.
    """

    kind: TransactionTokenKind
    text: str
    position: int = Field(default=0, ge=0)


class TransactionFlag(BaseModel):
    """Result of transaction boundary analysis for one migration unit."""

    explicit_syntax: bool = True
    tokens: List[str] = Field(default_factory=list)
    concurrent_conflict: bool = False
    conflicting_operations: List[int] = Field(default_factory=list)


class AnalysisReport(BaseModel):
    """Structured result for one migration file."""

    file_name: str
    dialect: str
    operations: List[Operation] = Field(default_factory=list)
    impacts: List[TableImpact] = Field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW
    notes: List[str] = Field(default_factory=list)
    transaction_flag: Optional[TransactionFlag] = None

    @property
    def transaction_error(self) -> Optional[str]:
        """Message for the CONCURRENTLY-inside-transaction conflict, if any."""
        if self.transaction_flag is None or not self.transaction_flag.concurrent_conflict:
            return None
        return (
            "If CONCURRENTLY operations run inside an explicit transaction block, "
            "then PostgreSQL rejects them with an error and the migration fails."
        )

    @property
    def unknown_operations(self) -> List[Operation]:
        return [op for op in self.operations if op.kind == OperationKind.UNKNOWN]


class FileAnalysis(BaseModel):
    """Outcome of analyzing one file in a batch: a report or an error."""

    file_path: str
    report: Optional[AnalysisReport] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
