"""Existence lookups against the relational store used by the unique/exists rules."""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from request_validator.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

PLACEHOLDER = "?"

# table or schema.table / column names taken from rule parameters
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class QueryCapability(Protocol):
    """Anything that can run a parameterized read query and return its rows."""

    async def query(self, sql: str, params: Sequence[Any]) -> Sequence[Any]:
        ...


def is_safe_identifier(name: str) -> bool:
    return bool(IDENTIFIER_PATTERN.match(name))


def build_count_query(table: str, column: str) -> str:
    """
    Build the count query issued by unique/exists.

    Table and column are interpolated as-is; rule definitions are trusted
    configuration. The compared value is always bound through the single
    ``?`` placeholder.
    """
    return f"SELECT COUNT(*) AS count FROM {table} WHERE {column} = {PLACEHOLDER}"


def to_named_binds(sql: str, params: Sequence[Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Rewrite ``?`` placeholders as SQLAlchemy named binds.

    Args:
        sql: Statement using positional ``?`` placeholders
        params: One value per placeholder, in order

    Returns:
        Tuple[str, Dict[str, Any]]: Statement with ``:p0``, ``:p1``... and the bind mapping

    Raises:
        ValueError: If the placeholder count does not match the parameters
    """
    pieces = sql.split(PLACEHOLDER)
    if len(pieces) - 1 != len(params):
        raise ValueError(
            f"Statement has {len(pieces) - 1} placeholders but {len(params)} parameters were given"
        )
    statement = pieces[0] + "".join(f":p{i}{piece}" for i, piece in enumerate(pieces[1:]))
    return statement, {f"p{i}": value for i, value in enumerate(params)}


class SqlAlchemyQuery:
    """Query capability backed by a pooled SQLAlchemy engine."""

    def __init__(self, engine: Engine):
        """
        Initialize the capability.

        Args:
            engine: SQLAlchemy engine; its connection pool makes the capability
                safe to share between concurrent validation calls
        """
        self.engine = engine

    async def query(self, sql: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        """
        Run a read query without blocking the event loop.

        Returns:
            List[Dict[str, Any]]: One mapping per result row
        """
        return await asyncio.to_thread(self._execute, sql, list(params))

    def _execute(self, sql: str, params: List[Any]) -> List[Dict[str, Any]]:
        statement, binds = to_named_binds(sql, params)
        with self.engine.connect() as connection:
            result = connection.execute(text(statement), binds)
            return [dict(row) for row in result.mappings()]

    def dispose(self) -> None:
        """Close pooled connections."""
        self.engine.dispose()


def create_query_from_settings(settings: Optional[Settings] = None) -> SqlAlchemyQuery:
    """
    Create a pooled query capability from configuration.

    Args:
        settings: Settings to use; defaults to the cached application settings

    Returns:
        SqlAlchemyQuery: Capability to pass to RuleEngine(lookup=...)
    """
    settings = settings or get_settings()
    engine = create_engine(
        settings.database_url_resolved,
        pool_size=settings.db_pool_size,
        pool_pre_ping=True,
    )
    logger.info(
        "Existence lookup engine created",
        extra={"dialect": engine.dialect.name, "pool_size": settings.db_pool_size},
    )
    return SqlAlchemyQuery(engine)
