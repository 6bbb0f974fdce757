"""Relational table definitions.

Tables are declared with SQLAlchemy Core so the same definitions drive
PostgreSQL in production and SQLite in tests. Each table carries the
uniqueness constraint that makes re-running a window idempotent.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from core.errors import LogscrollConfigError

METADATA = MetaData()

USER_LOGIN_TABLE = Table(
    "user_login",
    METADATA,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("login_time", DateTime(timezone=True), nullable=False),
    Column("uid", Text, nullable=False),
    Column("email", Text),
    Column("mobile", Text),
    Column("name", Text),
    Column("id_type", Text),
    Column("id_no", Text),
    Column("ebid", Text),
    Column("eid", Text),
    Column("salary", Integer),
    UniqueConstraint("login_time", "uid", name="user_login_login_time_uid_key"),
    Index("user_login_login_time_idx", "login_time"),
    Index("user_login_uid_idx", "uid"),
    Index("user_login_email_idx", "email"),
)

BUKOPIN_DATA_TABLE = Table(
    "bukopin_data",
    METADATA,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("timestamp", DateTime(timezone=True), nullable=False),
    Column("payload", JSON().with_variant(JSONB(), "postgresql"), nullable=False),
    Column("payload_digest", Text, nullable=False),
    UniqueConstraint("timestamp", "payload_digest", name="bukopin_data_timestamp_digest_key"),
    Index("bukopin_data_timestamp_idx", "timestamp"),
)


def resolve_table(table_name: str) -> Table:
    """Return the declared table with the given name.

    Raises:
        LogscrollConfigError: If no table with that name is declared.
    """
    table = METADATA.tables.get(table_name)
    if table is None:
        raise LogscrollConfigError(
            f"Unknown target table '{table_name}'. "
            f"Declared tables: {', '.join(sorted(METADATA.tables))}."
        )
    return table
