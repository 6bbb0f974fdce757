"""Record sink contract."""

from __future__ import annotations

from typing import Protocol, Sequence

from core.types import ProjectedRecord


class RecordSink(Protocol):
    """Bulk writer with duplicate-skipping semantics."""

    def insert_many(self, records: Sequence[ProjectedRecord], unique_key: Sequence[str]) -> int:
        """Insert records, skipping rows that violate ``unique_key``.

        Returns:
            Number of rows actually persisted.

        Raises:
            LogscrollLoadError: If the write is rejected as a whole.
        """
        ...

    def disconnect(self) -> None:
        """Release the sink connection."""
        ...
