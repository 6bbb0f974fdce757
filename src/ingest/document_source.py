"""Document source contract.

The pipeline only talks to the search backend through this protocol,
which keeps the scroll lifecycle testable without a live cluster.
"""

from __future__ import annotations

from typing import Protocol

from core.types import SearchPage, SearchRequest


class DocumentSource(Protocol):
    """Paginated search backend with server-held cursors."""

    def open_search(self, request: SearchRequest) -> SearchPage:
        """Run the initial search and return the first page and cursor."""
        ...

    def fetch_next(self, cursor_id: str, keep_alive: str) -> SearchPage:
        """Fetch the page after ``cursor_id`` and renew its liveness."""
        ...

    def release(self, cursor_id: str) -> None:
        """Release the server-side cursor."""
        ...
