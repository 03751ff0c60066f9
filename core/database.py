"""
core/database.py -- Engine construction and the shared schema registry.

Every table in itdoc is registered on the single `metadata` object below so
that foreign keys between tables owned by different stores (organization_users
-> users) resolve. Stores define their own Table objects against it and
receive the Engine through their constructor -- there is no module-global
connection.

SQLite specifics, applied per connection because PRAGMAs are not inherited by
new pool connections:
  journal_mode=WAL  -- readers proceed without blocking during writes.
  foreign_keys=ON   -- SQLite ships with FK enforcement off. Without it the
                       ON DELETE CASCADE on memberships and the dangling-
                       reference check in add_membership would be silent no-ops.

Layer rule: core/ is the kernel. No imports from api/, web/, auth/, or orgs/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import MetaData, create_engine, event, text
from sqlalchemy.engine import Engine

logger = logging.getLogger("itdoc.db")

metadata = MetaData()


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def create_db_engine(db_url: str) -> Engine:
    """Create an Engine for db_url with the SQLite pragmas installed.

    check_same_thread=False is required because FastAPI runs sync route
    handlers in a thread pool; the pool hands connections across threads.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def init_schema(engine: Engine) -> None:
    """Create any missing tables. Idempotent -- safe to call on every startup.

    Importing the store modules registers their tables on `metadata`; callers
    must do so before calling this.
    """
    metadata.create_all(engine)


def ping(engine: Engine) -> bool:
    """Return True if a trivial query succeeds. Used by the health endpoint."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("Database ping failed", exc_info=True)
        return False


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
