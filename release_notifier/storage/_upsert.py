"""Dialect-specific INSERT ... ON CONFLICT helpers"""

from sqlalchemy.dialects import postgresql, sqlite


def dialect_insert(dialect: str, table):
    """Return an insert construct that supports on_conflict_* for the dialect"""
    if dialect == "sqlite":
        return sqlite.insert(table)
    if dialect == "postgresql":
        return postgresql.insert(table)
    raise NotImplementedError(f"Upserts are not supported on {dialect}")
