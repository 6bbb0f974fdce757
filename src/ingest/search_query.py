"""Search query construction.

This module turns a time window and free-form criteria into the
Elasticsearch query DSL used to open a scroll.
"""

from __future__ import annotations

from typing import Any

from core.constants import TIMESTAMP_FIELD
from core.types import SearchCriteria, SearchWindow


def build_search_query(window: SearchWindow, criteria: SearchCriteria) -> dict[str, Any]:
    """Build a bool query for ``[start, end)`` plus match criteria.

    Args:
        window: Half-open window of absolute instants.
        criteria: Match and phrase criteria.

    Returns:
        Query DSL mapping suitable for the ``query`` search argument.
    """
    must: list[dict[str, Any]] = [
        {"match": {field_name: value}} for field_name, value in criteria.match.items()
    ]
    must.extend(
        {"match_phrase": {field_name: value}}
        for field_name, value in criteria.match_phrase.items()
    )
    return {
        "bool": {
            "must": must,
            "filter": [
                {
                    "range": {
                        TIMESTAMP_FIELD: {
                            "gte": window.start.isoformat(),
                            "lt": window.end.isoformat(),
                        }
                    }
                }
            ],
        }
    }


def build_search_sort() -> list[dict[str, Any]]:
    """Return the newest-first sort used by every scroll."""
    return [{TIMESTAMP_FIELD: {"order": "desc"}}]
