"""Elasticsearch-backed document source.

This module implements the document source contract over the scroll API
of the official Elasticsearch client.
"""

from __future__ import annotations

from typing import Any, Mapping

from elastic_transport import TransportError
from elasticsearch import ApiError, Elasticsearch

from core.config import ElasticsearchSettings
from core.constants import PAYLOAD_FIELD, SUBJECT_FIELD, TIMESTAMP_FIELD
from core.errors import LogscrollConfigError, LogscrollFetchError
from core.types import RawDocument, SearchPage, SearchRequest
from ingest.search_query import build_search_query, build_search_sort


def create_elasticsearch_client(settings: ElasticsearchSettings) -> Elasticsearch:
    """Create an Elasticsearch client from connection settings.

    Args:
        settings: Validated connection settings.

    Returns:
        Configured client.

    Raises:
        LogscrollConfigError: If neither a cloud id nor a node URL is set.
    """
    if settings.cloud_id:
        return Elasticsearch(
            cloud_id=settings.cloud_id,
            api_key=settings.api_key,
            request_timeout=settings.request_timeout,
        )
    if settings.node_url:
        return Elasticsearch(
            hosts=[settings.node_url],
            api_key=settings.api_key,
            request_timeout=settings.request_timeout,
        )
    raise LogscrollConfigError(
        "Cannot create search client: set ELASTIC_CLOUD_ID or ELASTIC_NODE."
    )


class ElasticsearchDocumentSource:
    """Scroll-based document source over one Elasticsearch client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def open_search(self, request: SearchRequest) -> SearchPage:
        """Open a scroll for the request window and criteria.

        Raises:
            LogscrollFetchError: If the search request fails.
        """
        try:
            response = self._client.search(
                index=request.index_pattern,
                scroll=request.keep_alive,
                size=request.page_size,
                source=list(request.source_fields),
                track_total_hits=True,
                query=build_search_query(request.window, request.criteria),
                sort=build_search_sort(),
            )
        except (ApiError, TransportError) as error:
            raise LogscrollFetchError(
                f"Failed to open search on {request.index_pattern}: {error}"
            ) from error
        return _page_from_response(response)

    def fetch_next(self, cursor_id: str, keep_alive: str) -> SearchPage:
        """Fetch the next scroll page, renewing the scroll keep-alive.

        Raises:
            LogscrollFetchError: If the scroll request fails.
        """
        try:
            response = self._client.scroll(scroll_id=cursor_id, scroll=keep_alive)
        except (ApiError, TransportError) as error:
            raise LogscrollFetchError(f"Failed to fetch next scroll page: {error}") from error
        return _page_from_response(response)

    def release(self, cursor_id: str) -> None:
        """Clear the scroll context on the server.

        Raises:
            LogscrollFetchError: If the clear request fails.
        """
        try:
            self._client.clear_scroll(scroll_id=cursor_id)
        except (ApiError, TransportError) as error:
            raise LogscrollFetchError(f"Failed to clear scroll context: {error}") from error

    def close(self) -> None:
        """Close the underlying client transport."""
        self._client.close()


def _page_from_response(response: Any) -> SearchPage:
    """Convert a search or scroll response into a typed page."""
    body = getattr(response, "body", response)
    hits_section = body.get("hits") or {}
    hits = hits_section.get("hits") or []
    documents = tuple(_document_from_hit(hit) for hit in hits)
    return SearchPage(
        documents=documents,
        cursor_id=body.get("_scroll_id"),
        total_hits=_total_hits(hits_section.get("total")),
    )


def _document_from_hit(hit: Mapping[str, Any]) -> RawDocument:
    source = hit.get("_source") or {}
    subject_id = source.get(SUBJECT_FIELD)
    return RawDocument(
        timestamp=source.get(TIMESTAMP_FIELD, ""),
        subject_id=str(subject_id) if subject_id is not None else "",
        raw_payload=source.get(PAYLOAD_FIELD),
    )


def _total_hits(total: Any) -> int | None:
    if isinstance(total, int):
        return total
    if isinstance(total, Mapping):
        value = total.get("value")
        return value if isinstance(value, int) else None
    return None
