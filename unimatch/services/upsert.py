"""
UniMatch — Dialect-aware ``INSERT .. ON CONFLICT`` helper.

PostgreSQL and SQLite both support ``ON CONFLICT`` but expose it through
their own ``insert`` constructs.  Services call :func:`insert_for` with
the session so the same statement works in production and in tests.
"""

from __future__ import annotations

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_for(db_session: AsyncSession, table):
    """Return an ``Insert`` supporting ``on_conflict_*`` for the bound dialect."""
    dialect = db_session.bind.dialect.name
    try:
        factory = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(
            f"ON CONFLICT upserts are not supported for dialect {dialect!r}"
        ) from None
    return factory(table)
