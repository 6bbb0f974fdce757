"""Scroll-and-load orchestration.

This module drives one run: a single outer loop over scroll pages,
per-page projection, and batched loading into the record sink. The
cursor and the sink are scoped resources released on every exit path.
"""

from __future__ import annotations

from typing import Sequence

from core.config import LogscrollConfig
from core.errors import LogscrollError, LogscrollFetchError
from core.logging_config import get_logger
from core.types import RawDocument, RunOptions, RunSummary, SearchRequest
from ingest.document_source import DocumentSource
from ingest.elasticsearch_source import ElasticsearchDocumentSource, create_elasticsearch_client
from ingest.scroll_cursor import ScrollCursor
from store.batch_loader import BatchLoader
from store.record_sink import RecordSink
from store.sql_sink import SqlRecordSink, create_sink_engine, require_target_table
from transforms.extraction_profiles import (
    ExtractionProfile,
    ProfileRegistry,
    default_profile_registry,
)
from transforms.record_projection import project_page

_LOGGER = get_logger(__name__)


class ScrollLoadRunner:
    """Runs one scroll over a time window and loads the projected records."""

    def __init__(
        self,
        options: RunOptions,
        source: DocumentSource,
        sink: RecordSink,
        profile: ExtractionProfile,
        index_pattern: str,
    ) -> None:
        self._options = options
        self._source = source
        self._sink = sink
        self._profile = profile.with_empty_records(options.keep_empty_records)
        self._request = SearchRequest(
            index_pattern=index_pattern,
            window=options.window,
            criteria=self._profile.default_criteria.merged(options.criteria),
            source_fields=self._profile.source_fields,
            page_size=options.page_size,
            keep_alive=options.keep_alive,
        )
        self._loader = BatchLoader(sink, self._profile.target.unique_key, options.batch_size)
        self.summary = RunSummary()

    @property
    def request(self) -> SearchRequest:
        return self._request

    def run(self) -> RunSummary:
        """Scroll the window, project every page and load the records.

        Returns:
            Run summary; ``degraded`` is set when any batch failed.

        Raises:
            LogscrollFetchError: If a page cannot be fetched. Records projected
                before the failure are still loaded, and the partial summary is
                attached to the error.
        """
        try:
            with ScrollCursor(self._source, self._request) as cursor:
                for documents in cursor:
                    self._process_page(documents)
            self._loader.flush()
        except LogscrollFetchError as error:
            self._loader.flush()
            self._sync_load_counts()
            self.summary.fatal_error = str(error)
            _LOGGER.error("run_failed", error=str(error), **self.summary.as_dict())
            error.summary = self.summary
            raise
        finally:
            self._sink.disconnect()
        self._sync_load_counts()
        _log_run_completion(self._options, self._profile, self.summary)
        return self.summary

    def _process_page(self, documents: Sequence[RawDocument]) -> None:
        self.summary.pages += 1
        self.summary.fetched += len(documents)
        projection = project_page(documents, self._profile, self._options.projection_workers)
        for failure in projection.failures:
            _LOGGER.warning(
                "payload_skipped",
                subject_id=failure.subject_id,
                timestamp=failure.timestamp,
                reason=failure.reason,
            )
        self.summary.projection_skipped += len(projection.failures)
        self._loader.add_all(projection.records)
        _LOGGER.info(
            "page_processed",
            page=self.summary.pages,
            documents=len(documents),
            projected=len(projection.records),
            skipped=len(projection.failures),
            total_fetched=self.summary.fetched,
        )

    def _sync_load_counts(self) -> None:
        stats = self._loader.stats
        self.summary.inserted = stats.inserted
        self.summary.load_skipped = stats.skipped
        self.summary.load_failed = stats.failed


def run_scroll_load(
    options: RunOptions,
    config: LogscrollConfig,
    registry: ProfileRegistry | None = None,
) -> RunSummary:
    """Run a scroll-and-load against the configured cluster and database.

    Args:
        options: Run options.
        config: Runtime configuration.
        registry: Optional profile registry; defaults to the built-in profiles.

    Returns:
        Final run summary.

    Raises:
        LogscrollConfigError: If the profile is unknown or its table is missing.
        LogscrollLoadError: If the target database cannot be reached.
        LogscrollFetchError: If the search backend fails mid-run.
    """
    profile = (registry or default_profile_registry()).get(options.profile_name)
    engine = create_sink_engine(config.database_url)
    try:
        require_target_table(engine, profile.target.table_name)
    except LogscrollError:
        engine.dispose()
        raise
    sink = SqlRecordSink(engine, profile.target, profile.output_columns)
    source = ElasticsearchDocumentSource(create_elasticsearch_client(config.elasticsearch))
    try:
        runner = ScrollLoadRunner(
            options,
            source,
            sink,
            profile,
            config.elasticsearch.index_pattern,
        )
        return runner.run()
    finally:
        source.close()


def _log_run_completion(
    options: RunOptions,
    profile: ExtractionProfile,
    summary: RunSummary,
) -> None:
    """Log run completion with contextual metadata."""
    _LOGGER.info(
        "run_completed",
        profile=profile.name,
        start=options.window.start.isoformat(),
        end=options.window.end.isoformat(),
        batch_size=options.batch_size,
        page_size=options.page_size,
        **summary.as_dict(),
    )
