"""SQLAlchemy engine & per-request store scope.

The engine (a connection pool) is process-wide; connections are not.
Each request enters ``open_store()``, which checks out one connection,
wraps it in a ``DataStore`` and returns it to the pool on every exit path.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from ledger_copilot.core.config import get_settings
from ledger_copilot.core.errors import ConnectionTeardownFailure, SchemaUnavailable
from ledger_copilot.core.logging import get_logger
from ledger_copilot.db.executor import DataStore

logger = get_logger(__name__)

_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the shared SQLAlchemy engine (lazy-created, cached)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = settings.database_url
        kwargs: dict = {"pool_pre_ping": True, "echo": False}
        if url.startswith("sqlite"):
            # Store calls run on worker threads.
            kwargs["connect_args"] = {"check_same_thread": False}
        _engine = create_engine(url, **kwargs)
        logger.info("DB engine created  dialect=%s  table=%s",
                    _engine.dialect.name, settings.gl_table_ref)
    return _engine


@contextmanager
def open_store(engine: Engine | None = None) -> Generator[DataStore, None, None]:
    """Yield a ``DataStore`` bound to one connection for the request.

    A failure to release the connection is logged and swallowed so it never
    replaces the request's own outcome.
    """
    settings = get_settings()
    engine = engine or get_engine()
    try:
        conn = engine.connect()
    except Exception as exc:
        raise SchemaUnavailable(f"Could not connect to the data store: {exc}") from exc

    try:
        yield DataStore(
            conn,
            schema=settings.gl_schema or None,
            table=settings.gl_table,
            timeout_ms=settings.query_timeout_ms,
        )
    finally:
        try:
            conn.close()
        except Exception as exc:
            err = ConnectionTeardownFailure(str(exc))
            logger.warning("Connection teardown failed: %s", err)
