"""
Data-store access for one request.

``DataStore`` wraps a single SQLAlchemy connection and exposes the two
capabilities the pipeline needs:
  1. ``list_columns`` -- live column catalog of the GL table
  2. ``execute``      -- run generated SQL, return JSON-safe row dicts

On Postgres the transaction is set READ ONLY with a statement timeout
before each query.  Other dialects rely on the grants of the configured
user.
"""
from __future__ import annotations

import decimal
import datetime
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from ledger_copilot.core.errors import RetrievalFailure, SchemaUnavailable
from ledger_copilot.core.logging import get_logger

logger = get_logger(__name__)

_QUERY_TIMEOUT_MS = 10_000  # 10 seconds max per query


def _serialise_value(val: Any) -> Any:
    """Convert DB types to JSON-serialisable Python types."""
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    return val


class DataStore:
    def __init__(
        self,
        conn: Connection,
        schema: str | None,
        table: str,
        timeout_ms: int = _QUERY_TIMEOUT_MS,
    ):
        self._conn = conn
        self._schema = schema
        self._table = table
        self._timeout_ms = timeout_ms

    def list_columns(self) -> list[str]:
        """Return the GL table's column names, in table order.

        Raises
        ------
        SchemaUnavailable
            If the catalog lookup fails or the table has no columns.
        """
        try:
            cols = inspect(self._conn).get_columns(self._table, schema=self._schema)
        except SQLAlchemyError as exc:
            raise SchemaUnavailable(f"Column catalog lookup failed: {exc}") from exc
        finally:
            self._end_transaction()

        names = [str(c["name"]) for c in cols]
        if not names:
            raise SchemaUnavailable(
                f"No columns found for {self._schema + '.' if self._schema else ''}{self._table}"
            )
        logger.info("Catalog: %d columns for %s", len(names), self._table)
        return names

    def execute(self, sql: str, params: dict | None = None) -> list[dict[str, Any]]:
        """Execute a read-only SQL query and return rows as serialisable dicts.

        Raises
        ------
        RetrievalFailure
            If the query fails for any reason.
        """
        logger.info("Executing SQL (%d chars)", len(sql))
        try:
            if self._conn.dialect.name == "postgresql":
                self._conn.execute(text("SET TRANSACTION READ ONLY"))
                self._conn.execute(text(f"SET LOCAL statement_timeout = {int(self._timeout_ms)}"))

            result = self._conn.execute(text(sql), params or {})
            columns = list(result.keys())
            rows = [
                {col: _serialise_value(val) for col, val in zip(columns, row)}
                for row in result.fetchall()
            ]
        except SQLAlchemyError as exc:
            self._rollback()
            raise RetrievalFailure(f"Query failed: {exc}") from exc
        finally:
            self._end_transaction()

        logger.info("Returned %d rows", len(rows))
        return rows

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except SQLAlchemyError:
            logger.warning("Rollback after failed query also failed")

    def _end_transaction(self) -> None:
        if self._conn.in_transaction():
            self._conn.rollback()
