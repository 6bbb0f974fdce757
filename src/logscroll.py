"""Public SDK surface for Logscroll.

This module provides a stable import path for library users.
It re-exports the pipeline runner, the profile registry and typed models.
"""

from __future__ import annotations

from core.config import LogscrollConfig
from core.errors import (
    LogscrollConfigError,
    LogscrollError,
    LogscrollFetchError,
    LogscrollLoadError,
)
from core.types import (
    ProjectedRecord,
    RawDocument,
    RunOptions,
    RunSummary,
    SearchCriteria,
    SearchWindow,
)
from ingest.elasticsearch_source import ElasticsearchDocumentSource
from ingest.pipeline import ScrollLoadRunner, run_scroll_load
from ingest.scroll_cursor import ScrollCursor
from store.batch_loader import BatchLoader
from store.sql_sink import SqlRecordSink, create_sink_engine
from transforms.extraction_profiles import (
    FieldRule,
    ProfileRegistry,
    RawPassthroughProfile,
    StoreTarget,
    StructuredProfile,
    default_profile_registry,
)
from transforms.payload_decoding import decode_payload
from transforms.record_projection import project_document

__all__ = [
    "BatchLoader",
    "ElasticsearchDocumentSource",
    "FieldRule",
    "LogscrollConfig",
    "LogscrollConfigError",
    "LogscrollError",
    "LogscrollFetchError",
    "LogscrollLoadError",
    "ProfileRegistry",
    "ProjectedRecord",
    "RawDocument",
    "RawPassthroughProfile",
    "RunOptions",
    "RunSummary",
    "ScrollCursor",
    "ScrollLoadRunner",
    "SearchCriteria",
    "SearchWindow",
    "SqlRecordSink",
    "StoreTarget",
    "StructuredProfile",
    "create_sink_engine",
    "decode_payload",
    "default_profile_registry",
    "project_document",
    "run_scroll_load",
]
