"""Unit tests for scroll-and-load orchestration."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from core.errors import LogscrollFetchError
from core.types import RawDocument, RunOptions, SearchCriteria, SearchWindow
from ingest.pipeline import ScrollLoadRunner
from store.schema import METADATA
from store.sql_sink import SqlRecordSink, create_sink_engine
from tests.fakes import FakeDocumentSource, InMemorySink, user_info_document
from transforms.extraction_profiles import default_profile_registry


def _options(**overrides: object) -> RunOptions:
    zone = timezone(timedelta(hours=8))
    window = SearchWindow(
        start=datetime(2025, 1, 15, tzinfo=zone),
        end=datetime(2025, 1, 17, tzinfo=zone),
    )
    values: dict[str, object] = {
        "profile_name": "retrieve_user_info",
        "window": window,
        "batch_size": 1000,
        "projection_workers": 1,
    }
    values.update(overrides)
    return RunOptions(**values)  # type: ignore[arg-type]


def _runner(source: FakeDocumentSource, sink: InMemorySink, **overrides: object) -> ScrollLoadRunner:
    options = _options(**overrides)
    profile = default_profile_registry().get(options.profile_name)
    return ScrollLoadRunner(options, source, sink, profile, "app-logs-*")


def test_single_document_window_loads_one_row() -> None:
    """One matching document should be fetched, projected and inserted."""
    source = FakeDocumentSource([[user_info_document(1, day=15)]])
    sink = InMemorySink()

    summary = _runner(source, sink).run()

    assert (summary.fetched, summary.inserted, summary.load_skipped, summary.load_failed) == (1, 1, 0, 0)
    assert summary.pages == 1 and summary.succeeded and summary.exit_code == 0


def test_run_merges_profile_criteria_with_caller_criteria() -> None:
    """The search should combine profile defaults with caller criteria."""
    source = FakeDocumentSource([])
    criteria = SearchCriteria(match_phrase={"payload": "inquiry"})

    _runner(source, InMemorySink(), criteria=criteria).run()

    request = source.open_requests[0]
    assert request.criteria.match == {"module": "RetrieveUserInfo", "action": "response"}
    assert request.criteria.match_phrase == {"payload": "inquiry"}


def test_projection_skips_are_counted_not_fatal() -> None:
    """Undecodable documents are counted and the run still succeeds."""
    bad_document = RawDocument(timestamp="2025-01-15T00:00:00Z", subject_id="uid-x", raw_payload="{oops")
    source = FakeDocumentSource([[user_info_document(1), bad_document]])

    summary = _runner(source, InMemorySink()).run()

    assert summary.projection_skipped == 1 and summary.inserted == 1 and summary.succeeded


def test_fetch_failure_releases_cursor_and_keeps_first_page() -> None:
    """A failing second page is fatal but first-page records are loaded."""
    first_page = [user_info_document(index) for index in range(3)]
    source = FakeDocumentSource([first_page, [user_info_document(9)]], fail_on_fetch=1)
    sink = InMemorySink()
    runner = _runner(source, sink)

    with pytest.raises(LogscrollFetchError) as raised:
        runner.run()

    summary = raised.value.summary
    assert source.release_calls == ["cursor-0"] and sink.disconnect_calls == 1
    assert summary is not None and summary.fetched == 3 and summary.inserted == 3
    assert summary.fatal_error is not None and summary.exit_code == 1


def test_failed_batch_degrades_run_but_continues() -> None:
    """A rejected batch is counted failed and later batches still load."""
    documents = [user_info_document(index) for index in range(5)]
    source = FakeDocumentSource([documents])
    sink = InMemorySink(failing_submissions=[1])

    summary = _runner(source, sink, batch_size=2).run()

    assert sink.submissions == [2, 2, 1]
    assert (summary.inserted, summary.load_failed) == (3, 2)
    assert summary.degraded and summary.exit_code == 1


def test_rerun_of_same_window_skips_duplicates() -> None:
    """Running the same window twice inserts nothing the second time."""
    documents = [user_info_document(index) for index in range(4)]
    sink = InMemorySink()

    first = _runner(FakeDocumentSource([documents]), sink).run()
    second = _runner(FakeDocumentSource([documents]), sink).run()

    assert (first.inserted, second.inserted, second.load_skipped) == (4, 0, 4)
    assert len(sink.rows) == 4


def test_raw_passthrough_run_uses_digest_unique_key() -> None:
    """Raw passthrough records load with the timestamp and digest key."""
    document = RawDocument(timestamp="2025-01-15T00:00:00Z", subject_id="", raw_payload='{"status": "PAID"}')
    sink = InMemorySink()

    summary = _runner(FakeDocumentSource([[document]]), sink, profile_name="bukopin").run()

    assert summary.inserted == 1 and sink.unique_keys == [("timestamp", "payload_digest")]


def test_keep_empty_records_inserts_null_rows() -> None:
    """With keep_empty_records, recognised empty sections are still loaded."""
    document = RawDocument(timestamp="2025-01-15T00:00:00Z", subject_id="uid-1", raw_payload='{"profile": {}}')

    summary = _runner(FakeDocumentSource([[document]]), InMemorySink(), keep_empty_records=True).run()

    assert summary.inserted == 1 and summary.projection_skipped == 0


def test_threaded_projection_loads_every_record() -> None:
    """A worker pool should not change what gets loaded."""
    documents = [user_info_document(index) for index in range(25)]
    sink = InMemorySink()

    summary = _runner(FakeDocumentSource([documents]), sink, projection_workers=4).run()

    assert summary.inserted == 25


def test_unencodable_document_is_skipped_and_page_still_loads(tmp_path: Path) -> None:
    """A lone surrogate in one payload must not abort loading its page."""
    engine = create_sink_engine(f"sqlite:///{tmp_path / 'logscroll.db'}")
    METADATA.create_all(engine)
    profile = default_profile_registry().get("retrieve_user_info")
    sink = SqlRecordSink(engine, profile.target, profile.output_columns)
    bad_document = RawDocument(
        timestamp="2025-01-15T01:00:00Z",
        subject_id="uid-bad",
        raw_payload='{"profile": {"email": "\\ud800"}}',
    )
    source = FakeDocumentSource([[user_info_document(1), bad_document]])

    summary = ScrollLoadRunner(_options(), source, sink, profile, "app-logs-*").run()

    assert (summary.inserted, summary.projection_skipped, summary.load_failed) == (1, 1, 0)
    assert summary.succeeded
