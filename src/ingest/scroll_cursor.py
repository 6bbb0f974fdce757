"""Scroll cursor lifecycle.

This module wraps the document source's scroll protocol in a scoped,
single-use iterator of pages. The server-side cursor is released exactly
once on every exit path: exhaustion, fetch errors, early ``close()``,
abandoned iteration and interrupts.
"""

from __future__ import annotations

from typing import Iterator

from core.errors import LogscrollError
from core.logging_config import get_logger
from core.types import RawDocument, SearchRequest
from ingest.document_source import DocumentSource

_LOGGER = get_logger(__name__)


class ScrollCursor:
    """Lazy, non-rewindable sequence of raw document pages.

    Use as a context manager so the cursor is released even when the
    consumer stops iterating early::

        with ScrollCursor(source, request) as cursor:
            for page in cursor:
                ...
    """

    def __init__(self, source: DocumentSource, request: SearchRequest) -> None:
        self._source = source
        self._request = request
        self._cursor_id: str | None = None
        self._started = False
        self._released = False
        self.total_hits: int | None = None
        self.pages_fetched = 0

    def __enter__(self) -> "ScrollCursor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __iter__(self) -> Iterator[tuple[RawDocument, ...]]:
        if self._started:
            raise LogscrollError(
                "Scroll cursor cannot be rewound. Open a new cursor to scroll again."
            )
        self._started = True
        return self._pages()

    @property
    def released(self) -> bool:
        return self._released

    def close(self) -> None:
        """Release the server-side cursor if one was opened.

        Release failures are logged and swallowed; an unreleased scroll
        expires on its own keep-alive timer.
        """
        if self._released:
            return
        self._released = True
        if self._cursor_id is None:
            return
        try:
            self._source.release(self._cursor_id)
        except Exception as error:
            _LOGGER.warning("scroll_release_failed", error=str(error))
            return
        _LOGGER.info("scroll_released", pages_fetched=self.pages_fetched)

    def _pages(self) -> Iterator[tuple[RawDocument, ...]]:
        try:
            page = self._source.open_search(self._request)
            self._remember(page.cursor_id)
            self.total_hits = page.total_hits
            _LOGGER.info(
                "scroll_opened",
                index_pattern=self._request.index_pattern,
                start=self._request.window.start.isoformat(),
                end=self._request.window.end.isoformat(),
                total_hits=page.total_hits,
            )
            while page.documents:
                self.pages_fetched += 1
                yield page.documents
                if self._released or not page.cursor_id:
                    return
                page = self._source.fetch_next(page.cursor_id, self._request.keep_alive)
                self._remember(page.cursor_id)
        finally:
            self.close()

    def _remember(self, cursor_id: str | None) -> None:
        if cursor_id:
            self._cursor_id = cursor_id
