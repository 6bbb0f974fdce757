"""Shared typed models.

This module defines the data models passed between the search source,
the projection transforms, the batch loader and the record sinks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Union

from core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PROJECTION_WORKERS,
    DEFAULT_SCROLL_KEEP_ALIVE,
    EXIT_CODE_FAILURE,
    EXIT_CODE_SUCCESS,
)
from core.errors import LogscrollConfigError

DecodedPayload = Union[dict[str, Any], list[Any]]


@dataclass(frozen=True)
class RawDocument:
    """One search hit as returned by the document source.

    Attributes:
        timestamp: Raw ``@timestamp`` value of the hit.
        subject_id: Subject identifier, empty when the index does not carry one.
        raw_payload: Embedded payload, a JSON string or an already parsed tree.
    """

    timestamp: str
    subject_id: str
    raw_payload: str | dict[str, Any] | list[Any] | None


@dataclass(frozen=True)
class DecodeFailure:
    """Tagged failure value returned by the payload decoder."""

    subject_id: str
    timestamp: str
    reason: str


@dataclass(frozen=True)
class ProjectedRecord:
    """Flattened, load-ready record.

    Attributes:
        timestamp: Timezone-aware UTC instant of the source document.
        subject_id: Subject identifier, may be empty for untracked profiles.
        fields: Column name to value mapping produced by the profile.
    """

    timestamp: datetime
    subject_id: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchWindow:
    """Half-open time interval ``[start, end)`` of absolute instants."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise LogscrollConfigError(
                "Search window bounds must be timezone-aware instants."
            )
        if self.start >= self.end:
            raise LogscrollConfigError(
                f"Invalid search window: start {self.start.isoformat()} "
                f"must be before end {self.end.isoformat()}."
            )


@dataclass(frozen=True)
class SearchCriteria:
    """Free-form match criteria combined with the time window.

    Attributes:
        match: Field to value pairs added as ``match`` clauses.
        match_phrase: Field to phrase pairs added as ``match_phrase`` clauses.
    """

    match: Mapping[str, str] = field(default_factory=dict)
    match_phrase: Mapping[str, str] = field(default_factory=dict)

    def merged(self, other: "SearchCriteria") -> "SearchCriteria":
        """Return criteria where ``other`` overrides matching keys of self."""
        return SearchCriteria(
            match={**self.match, **other.match},
            match_phrase={**self.match_phrase, **other.match_phrase},
        )


@dataclass(frozen=True)
class SearchRequest:
    """Everything needed to open one scroll over the search backend."""

    index_pattern: str
    window: SearchWindow
    criteria: SearchCriteria
    source_fields: tuple[str, ...]
    page_size: int = DEFAULT_PAGE_SIZE
    keep_alive: str = DEFAULT_SCROLL_KEEP_ALIVE


@dataclass(frozen=True)
class SearchPage:
    """One page of hits plus the cursor handle for the next fetch."""

    documents: tuple[RawDocument, ...]
    cursor_id: str | None
    total_hits: int | None = None


@dataclass(frozen=True)
class LoadResult:
    """Outcome of one batch submission."""

    submitted: int
    inserted: int
    skipped: int
    failed: int = 0


@dataclass(frozen=True)
class RunOptions:
    """Options for one scroll-and-load run.

    Attributes:
        profile_name: Extraction profile to apply.
        window: Half-open time window to scroll.
        criteria: Extra criteria merged over the profile defaults.
        page_size: Documents requested per scroll page.
        batch_size: Records per insert batch.
        keep_alive: Scroll liveness window.
        projection_workers: Threads used to project one page.
        keep_empty_records: Insert structured records with no populated fields.
    """

    profile_name: str
    window: SearchWindow
    criteria: SearchCriteria = field(default_factory=SearchCriteria)
    page_size: int = DEFAULT_PAGE_SIZE
    batch_size: int = DEFAULT_BATCH_SIZE
    keep_alive: str = DEFAULT_SCROLL_KEEP_ALIVE
    projection_workers: int = DEFAULT_PROJECTION_WORKERS
    keep_empty_records: bool = False


@dataclass
class RunSummary:
    """Counters accumulated across one run and reported once at the end."""

    fetched: int = 0
    pages: int = 0
    projection_skipped: int = 0
    inserted: int = 0
    load_skipped: int = 0
    load_failed: int = 0
    fatal_error: str | None = None

    @property
    def degraded(self) -> bool:
        """Whether any batch failed to load."""
        return self.load_failed > 0

    @property
    def succeeded(self) -> bool:
        """Whether the run completed without fatal or degraded conditions."""
        return self.fatal_error is None and not self.degraded

    @property
    def exit_code(self) -> int:
        return EXIT_CODE_SUCCESS if self.succeeded else EXIT_CODE_FAILURE

    def as_dict(self) -> dict[str, object]:
        return {
            "fetched": self.fetched,
            "pages": self.pages,
            "projection_skipped": self.projection_skipped,
            "inserted": self.inserted,
            "load_skipped": self.load_skipped,
            "load_failed": self.load_failed,
            "degraded": self.degraded,
            "fatal_error": self.fatal_error,
        }
