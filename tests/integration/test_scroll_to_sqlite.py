"""Integration test for scrolling fake search pages into SQLite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from sqlalchemy import select

from core.types import RawDocument, RunOptions, SearchWindow
from ingest.pipeline import ScrollLoadRunner
from store.schema import METADATA, USER_LOGIN_TABLE
from store.sql_sink import SqlRecordSink, create_sink_engine
from tests.fakes import FakeDocumentSource, user_info_document
from transforms.extraction_profiles import default_profile_registry


def _run_window(database_url: str, pages) -> tuple:
    zone = timezone(timedelta(hours=8))
    options = RunOptions(
        profile_name="retrieve_user_info",
        window=SearchWindow(
            start=datetime(2025, 1, 15, tzinfo=zone),
            end=datetime(2025, 1, 17, tzinfo=zone),
        ),
        batch_size=2,
        projection_workers=2,
    )
    profile = default_profile_registry().get(options.profile_name)
    engine = create_sink_engine(database_url)
    METADATA.create_all(engine)
    sink = SqlRecordSink(engine, profile.target, profile.output_columns)
    source = FakeDocumentSource(pages)
    summary = ScrollLoadRunner(options, source, sink, profile, "app-logs-*").run()
    return summary, source


def test_scroll_window_loads_rows_and_rerun_is_idempotent(tmp_path: Path) -> None:
    """A two-page window loads every valid row once across reruns."""
    database_url = f"sqlite:///{tmp_path / 'logscroll.db'}"
    double_encoded = RawDocument(
        timestamp="2025-01-16T09:00:00Z",
        subject_id="uid-double",
        raw_payload='"{\\"profile\\": {\\"email\\": \\"double@example.com\\"}}"',
    )
    pages = [
        [user_info_document(1), user_info_document(2)],
        [user_info_document(3, day=16), double_encoded],
    ]

    first, source = _run_window(database_url, pages)
    second, _ = _run_window(database_url, pages)

    engine = create_sink_engine(database_url)
    with engine.connect() as connection:
        rows = connection.execute(
            select(USER_LOGIN_TABLE.c.uid, USER_LOGIN_TABLE.c.email, USER_LOGIN_TABLE.c.salary)
            .order_by(USER_LOGIN_TABLE.c.uid)
        ).all()
    engine.dispose()
    assert (first.fetched, first.pages, first.inserted, first.exit_code) == (4, 2, 4, 0)
    assert (second.inserted, second.load_skipped) == (0, 4)
    assert source.release_calls == ["cursor-end"]
    assert [row.uid for row in rows] == ["uid-1", "uid-2", "uid-3", "uid-double"]
    assert rows[3].email == "double@example.com" and rows[0].salary == 7500000
