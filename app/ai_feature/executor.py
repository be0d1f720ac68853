import asyncio
import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import TextClause

from app.ai_feature.auditor import (
    QUOTED_RE,
    extract_cte_names,
    extract_table_references,
)
from app.ai_feature.errors import ExecutionError, MissingTablesError
from app.core.config import settings

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def _scalar(value: Any) -> Any:
    # Keep numeric columns numeric in the JSON envelope
    if isinstance(value, Decimal):
        return float(value)
    return value


def _bind_name(key: str) -> str:
    return key[1:] if key.startswith("@") else key


def bind_parameters(
    sql: str, parameters: Mapping[str, Any]
) -> Tuple[TextClause, Dict[str, Any]]:
    """
    Turn a statement with @name placeholders into a SQLAlchemy text clause.

    Only the placeholders of supplied parameters are rewritten, and never
    inside string literals or quoted identifiers. Every other colon is escaped so text() does not
    read it as a bind.
    """
    binds = {_bind_name(key): value for key, value in parameters.items()}

    patterns = [
        (re.compile(r"@" + re.escape(name) + r"\b", re.IGNORECASE), f":{name}")
        for name in binds
    ]

    def rewrite(segment: str) -> str:
        segment = segment.replace(":", r"\:")
        for pattern, replacement in patterns:
            segment = pattern.sub(replacement, segment)
        return segment

    pieces: List[str] = []
    last = 0
    for quoted in QUOTED_RE.finditer(sql):
        pieces.append(rewrite(sql[last : quoted.start()]))
        pieces.append(quoted.group(0).replace(":", r"\:"))
        last = quoted.end()
    pieces.append(rewrite(sql[last:]))

    return text("".join(pieces)), binds


def referenced_tables(sql: str) -> Set[str]:
    tables, _ = extract_table_references(sql)
    return set(tables) - extract_cte_names(sql)


async def ensure_tables_exist(db: AsyncSession, sql: str) -> None:
    mentioned = referenced_tables(sql)
    if not mentioned:
        return

    existing = await db.run_sync(
        lambda session: {
            name.lower() for name in inspect(session.connection()).get_table_names()
        }
    )
    missing = mentioned - existing
    if missing:
        raise MissingTablesError(missing)


async def execute_read_only(
    db: AsyncSession,
    sql: str,
    parameters: Mapping[str, Any],
    timeout: Optional[float] = None,
) -> List[Row]:
    """
    Execute an approved statement and materialize every row.

    The implicit read transaction is always rolled back. Cancellation is
    not intercepted; the session owner releases the connection.
    """
    statement, binds = bind_parameters(sql, parameters)
    timeout = settings.SQL_COMMAND_TIMEOUT if timeout is None else timeout

    try:
        await ensure_tables_exist(db, sql)
        result = await asyncio.wait_for(db.execute(statement, binds), timeout)
        rows = [
            {column: _scalar(value) for column, value in row.items()}
            for row in result.mappings().all()
        ]
    except asyncio.TimeoutError as error:
        raise ExecutionError(f"Query timed out after {timeout}s") from error
    except SQLAlchemyError as error:
        raise ExecutionError(f"Query execution failed: {error}") from error
    finally:
        await db.rollback()

    logger.info(f"Read-only query returned {len(rows)} rows")
    return rows
