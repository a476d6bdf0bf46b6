"""Operation extractors, one per migration dialect."""

from typing import Dict, Optional, Type

from ..base import OperationExtractor
from ..exceptions import UnsupportedDialectError
from .alembic_extractor import AlembicExtractor
from .django_extractor import DjangoExtractor
from .sequelize_extractor import SequelizeExtractor
from .sql_extractor import SqlExtractor
from .sql_utils import normalize_sql, split_statements

EXTRACTORS: Dict[str, Type[OperationExtractor]] = {
    SqlExtractor.dialect: SqlExtractor,
    AlembicExtractor.dialect: AlembicExtractor,
    DjangoExtractor.dialect: DjangoExtractor,
    SequelizeExtractor.dialect: SequelizeExtractor,
}

SUPPORTED_DIALECTS = tuple(EXTRACTORS)


def get_extractor(dialect: str, pg_version: Optional[int] = None) -> OperationExtractor:
    """Create the extractor for a dialect.

    Raises:
        UnsupportedDialectError: If no extractor handles the dialect
    """
    try:
        extractor_class = EXTRACTORS[dialect]
    except KeyError:
        raise UnsupportedDialectError(
            f"Unsupported dialect: {dialect}. Supported: {', '.join(SUPPORTED_DIALECTS)}"
        ) from None
    return extractor_class(pg_version=pg_version)  # type: ignore[call-arg]


__all__ = [
    "AlembicExtractor",
    "DjangoExtractor",
    "SequelizeExtractor",
    "SqlExtractor",
    "EXTRACTORS",
    "SUPPORTED_DIALECTS",
    "get_extractor",
    "normalize_sql",
    "split_statements",
]
