"""Batched, duplicate-skipping record loading.

This module buffers projected records and submits them to a record sink
in fixed-size batches. A batch the sink rejects is counted as failed and
loading continues with the next batch; nothing is retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from core.constants import DEFAULT_BATCH_SIZE
from core.errors import LogscrollConfigError, LogscrollLoadError
from core.logging_config import get_logger
from core.types import LoadResult, ProjectedRecord
from store.record_sink import RecordSink

_LOGGER = get_logger(__name__)


@dataclass
class LoadStats:
    """Running totals across all submitted batches."""

    batches: int = 0
    inserted: int = 0
    skipped: int = 0
    failed: int = 0
    failed_batches: int = 0

    @property
    def degraded(self) -> bool:
        return self.failed_batches > 0


class BatchLoader:
    """Accumulates records and flushes them to a sink in batches."""

    def __init__(
        self,
        sink: RecordSink,
        unique_key: Sequence[str],
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if batch_size <= 0:
            raise LogscrollConfigError(f"Invalid batch size {batch_size}: expected > 0.")
        self._sink = sink
        self._unique_key = tuple(unique_key)
        self._batch_size = batch_size
        self._buffer: list[ProjectedRecord] = []
        self.stats = LoadStats()

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def add(self, record: ProjectedRecord) -> None:
        """Buffer one record, submitting the buffer once it is full."""
        self._buffer.append(record)
        if len(self._buffer) >= self._batch_size:
            self._submit_buffer()

    def add_all(self, records: Iterable[ProjectedRecord]) -> None:
        for record in records:
            self.add(record)

    def flush(self) -> None:
        """Submit any trailing partial batch."""
        if self._buffer:
            self._submit_buffer()

    def submit(self, batch: Sequence[ProjectedRecord]) -> LoadResult:
        """Submit one batch to the sink and fold the outcome into stats.

        Args:
            batch: Records to insert atomically.

        Returns:
            Inserted and skipped counts, or the whole batch as failed.
        """
        if not batch:
            return LoadResult(submitted=0, inserted=0, skipped=0)
        try:
            inserted = self._sink.insert_many(batch, self._unique_key)
        except LogscrollLoadError as error:
            result = LoadResult(submitted=len(batch), inserted=0, skipped=0, failed=len(batch))
            self._record(result)
            _LOGGER.error(
                "batch_failed",
                batch_number=self.stats.batches,
                records=len(batch),
                error=str(error),
            )
            return result
        inserted = min(max(inserted, 0), len(batch))
        result = LoadResult(
            submitted=len(batch),
            inserted=inserted,
            skipped=len(batch) - inserted,
        )
        self._record(result)
        _LOGGER.info(
            "batch_loaded",
            batch_number=self.stats.batches,
            inserted=result.inserted,
            skipped=result.skipped,
            total_inserted=self.stats.inserted,
        )
        return result

    def _submit_buffer(self) -> None:
        batch = self._buffer
        self._buffer = []
        self.submit(batch)

    def _record(self, result: LoadResult) -> None:
        self.stats.batches += 1
        self.stats.inserted += result.inserted
        self.stats.skipped += result.skipped
        self.stats.failed += result.failed
        if result.failed:
            self.stats.failed_batches += 1
