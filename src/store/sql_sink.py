"""SQL record sink.

This module writes projected records into a declared table with one
multi-row ``INSERT ... ON CONFLICT DO NOTHING`` statement per batch, so
a batch either commits as a whole or fails as a whole.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from sqlalchemy import Table, create_engine, inspect, make_url
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from core.errors import LogscrollConfigError, LogscrollLoadError
from core.types import ProjectedRecord
from store.schema import resolve_table
from transforms.extraction_profiles import StoreTarget

_SUPPORTED_DIALECTS = ("postgresql", "sqlite")


def create_sink_engine(database_url: str) -> Engine:
    """Create a pooled engine for the target database.

    Raises:
        LogscrollConfigError: If the URL is malformed or the dialect unsupported.
    """
    try:
        url = make_url(database_url)
    except ArgumentError as error:
        raise LogscrollConfigError(f"Invalid database URL: {error}") from error
    backend_name = url.get_backend_name()
    if backend_name not in _SUPPORTED_DIALECTS:
        raise LogscrollConfigError(
            f"Unsupported database dialect '{backend_name}'. "
            f"Supported: {', '.join(_SUPPORTED_DIALECTS)}."
        )
    return create_engine(url, pool_pre_ping=True)


def require_target_table(engine: Engine, table_name: str) -> None:
    """Check that the target table exists before any document is fetched.

    Raises:
        LogscrollConfigError: If the table has not been created.
        LogscrollLoadError: If the database cannot be reached.
    """
    try:
        exists = inspect(engine).has_table(table_name)
    except SQLAlchemyError as error:
        raise LogscrollLoadError(f"Cannot inspect target database: {error}") from error
    if not exists:
        raise LogscrollConfigError(
            f"Target table {table_name} does not exist. "
            "Create the logscroll tables (store/schema.py) before running."
        )


class SqlRecordSink:
    """Duplicate-skipping bulk writer over one SQLAlchemy engine."""

    def __init__(
        self,
        engine: Engine,
        target: StoreTarget,
        field_columns: Iterable[str],
    ) -> None:
        """Create a sink bound to one target table.

        Args:
            engine: Engine for the target database.
            target: Destination table and uniqueness key.
            field_columns: Columns the profile fills besides timestamp and subject.

        Raises:
            LogscrollConfigError: If the table lacks any required column.
        """
        self._engine = engine
        self._target = target
        self._table = resolve_table(target.table_name)
        _validate_columns(self._table, target, tuple(field_columns))

    def insert_many(self, records: Sequence[ProjectedRecord], unique_key: Sequence[str]) -> int:
        """Insert records and return how many rows were persisted.

        Args:
            records: Records of one batch.
            unique_key: Columns of the uniqueness constraint to skip on.

        Returns:
            Inserted row count; rows skipped as duplicates are not counted.

        Raises:
            LogscrollLoadError: If the database rejects the statement.
        """
        if not records:
            return 0
        rows = [self._build_row(record) for record in records]
        statement = (
            _dialect_insert(self._engine.dialect.name, self._table)
            .values(rows)
            .on_conflict_do_nothing(index_elements=list(unique_key))
        )
        try:
            with self._engine.begin() as connection:
                result = connection.execute(statement)
        except (SQLAlchemyError, ValueError, TypeError) as error:
            raise LogscrollLoadError(
                f"Failed to insert {len(rows)} rows into {self._table.name}: {error}"
            ) from error
        return max(result.rowcount, 0)

    def disconnect(self) -> None:
        """Dispose pooled connections."""
        self._engine.dispose()

    def _build_row(self, record: ProjectedRecord) -> dict[str, Any]:
        row: dict[str, Any] = {self._target.timestamp_column: record.timestamp}
        if self._target.subject_column is not None:
            row[self._target.subject_column] = record.subject_id
        row.update(record.fields)
        return row


def _dialect_insert(dialect_name: str, table: Table) -> Any:
    if dialect_name == "postgresql":
        return postgresql.insert(table)
    if dialect_name == "sqlite":
        return sqlite.insert(table)
    raise LogscrollConfigError(f"Unsupported database dialect '{dialect_name}'.")


def _validate_columns(table: Table, target: StoreTarget, field_columns: tuple[str, ...]) -> None:
    required = [target.timestamp_column, *field_columns, *target.unique_key]
    if target.subject_column is not None:
        required.append(target.subject_column)
    missing = sorted({column for column in required if column not in table.columns})
    if missing:
        raise LogscrollConfigError(
            f"Table {table.name} is missing columns required by the profile: {', '.join(missing)}."
        )
