"""Record projection transform.

This module maps raw search documents onto load-ready records using an
extraction profile. Projection is pure, so documents of one page can be
projected on a thread pool and joined back in page order.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
import re
from typing import Any, Sequence

from core.types import DecodeFailure, ProjectedRecord, RawDocument
from transforms.extraction_profiles import ExtractionProfile
from transforms.payload_decoding import decode_payload

# Lone surrogates cannot be encoded to UTF-8 and NUL is rejected by PostgreSQL text.
_UNSTORABLE_TEXT_PATTERN = re.compile(r"[\x00\ud800-\udfff]")


@dataclass(frozen=True)
class PageProjection:
    """Projected records of one page plus the documents that were dropped.

    Attributes:
        records: Projected records in page order.
        failures: One entry per dropped document.
    """

    records: tuple[ProjectedRecord, ...]
    failures: tuple[DecodeFailure, ...]


def project_document(
    document: RawDocument,
    profile: ExtractionProfile,
) -> ProjectedRecord | None:
    """Project one raw document with the given profile.

    Args:
        document: Raw search hit.
        profile: Extraction profile to apply.

    Returns:
        A projected record, or None when the document carries no usable signal.
    """
    outcome = _project(document, profile)
    if isinstance(outcome, DecodeFailure):
        return None
    return outcome


def project_page(
    documents: Sequence[RawDocument],
    profile: ExtractionProfile,
    workers: int = 1,
) -> PageProjection:
    """Project every document of one page.

    Args:
        documents: Page documents in backend order.
        profile: Extraction profile to apply.
        workers: Thread count; 1 or less projects inline.

    Returns:
        Records in page order plus per-document failures.
    """
    if workers <= 1 or len(documents) <= 1:
        outcomes = [_project(document, profile) for document in documents]
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(lambda document: _project(document, profile), documents))
    records: list[ProjectedRecord] = []
    failures: list[DecodeFailure] = []
    for outcome in outcomes:
        if isinstance(outcome, DecodeFailure):
            failures.append(outcome)
        else:
            records.append(outcome)
    return PageProjection(records=tuple(records), failures=tuple(failures))


def parse_document_timestamp(raw_timestamp: Any) -> datetime | None:
    """Parse an ``@timestamp`` value into an aware UTC datetime.

    Args:
        raw_timestamp: ISO-8601 string or epoch milliseconds.

    Returns:
        UTC datetime, or None when the value is not a valid instant.
    """
    if isinstance(raw_timestamp, bool) or raw_timestamp is None:
        return None
    if isinstance(raw_timestamp, (int, float)):
        try:
            return datetime.fromtimestamp(raw_timestamp / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(raw_timestamp, str) or not raw_timestamp.strip():
        return None
    try:
        parsed = datetime.fromisoformat(raw_timestamp.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _project(document: RawDocument, profile: ExtractionProfile) -> ProjectedRecord | DecodeFailure:
    timestamp = parse_document_timestamp(document.timestamp)
    if timestamp is None:
        return DecodeFailure(
            subject_id=document.subject_id,
            timestamp=str(document.timestamp),
            reason="invalid_timestamp",
        )
    if profile.tracks_subject and not document.subject_id:
        return DecodeFailure(
            subject_id="",
            timestamp=document.timestamp,
            reason="missing_subject",
        )
    decoded = decode_payload(document.raw_payload, document.subject_id, document.timestamp)
    if isinstance(decoded, DecodeFailure):
        return decoded
    fields = profile.extract(decoded)
    if fields is None:
        return DecodeFailure(
            subject_id=document.subject_id,
            timestamp=document.timestamp,
            reason="no_extracted_fields",
        )
    subject_id = document.subject_id if profile.tracks_subject else ""
    if _has_unstorable_text(subject_id) or _has_unstorable_text(fields):
        return DecodeFailure(
            subject_id=document.subject_id,
            timestamp=document.timestamp,
            reason="unstorable_text",
        )
    return ProjectedRecord(timestamp=timestamp, subject_id=subject_id, fields=fields)


def _has_unstorable_text(value: Any) -> bool:
    if isinstance(value, str):
        return _UNSTORABLE_TEXT_PATTERN.search(value) is not None
    if isinstance(value, dict):
        return any(
            _has_unstorable_text(key) or _has_unstorable_text(item) for key, item in value.items()
        )
    if isinstance(value, list):
        return any(_has_unstorable_text(item) for item in value)
    return False
