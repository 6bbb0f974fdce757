"""Embedded payload decoding.

This module turns the ``payload`` field of a log document into a JSON
tree. Upstream producers sometimes serialize the payload twice, leaving
escaped quotes inside a quoted string; a single explicit recovery pass
unwraps that pattern and nothing more.
"""

from __future__ import annotations

import json
from typing import Any

from core.errors import LogscrollDecodeError
from core.types import DecodedPayload, DecodeFailure


def decode_payload(
    raw_payload: Any,
    subject_id: str = "",
    timestamp: str = "",
) -> DecodedPayload | DecodeFailure:
    """Decode a raw payload into a JSON object or array.

    Args:
        raw_payload: Payload string or already structured value.
        subject_id: Subject id of the owning document, for diagnostics.
        timestamp: Timestamp of the owning document, for diagnostics.

    Returns:
        The decoded tree, or a ``DecodeFailure`` describing why decoding failed.
    """
    if isinstance(raw_payload, (dict, list)):
        return raw_payload
    if raw_payload is None:
        return DecodeFailure(subject_id=subject_id, timestamp=timestamp, reason="missing_payload")
    if not isinstance(raw_payload, str):
        return DecodeFailure(
            subject_id=subject_id, timestamp=timestamp, reason="unsupported_type"
        )
    try:
        return _parse_structured(raw_payload)
    except LogscrollDecodeError:
        pass
    try:
        return _parse_structured(_unescape_double_encoded(raw_payload))
    except LogscrollDecodeError as error:
        return DecodeFailure(subject_id=subject_id, timestamp=timestamp, reason=str(error))


def _unescape_double_encoded(raw_payload: str) -> str:
    """Undo one layer of quote escaping.

    Args:
        raw_payload: Payload text that failed the direct parse.

    Returns:
        Text with ``\\"`` replaced by ``"`` and one enclosing quote pair removed.
    """
    corrected = raw_payload.replace('\\"', '"')
    if len(corrected) >= 2 and corrected.startswith('"') and corrected.endswith('"'):
        return corrected[1:-1]
    return corrected


def _parse_structured(text: str) -> DecodedPayload:
    """Parse JSON text that must yield an object or an array.

    Raises:
        LogscrollDecodeError: If text is not JSON or not a structured value.
    """
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as error:
        raise LogscrollDecodeError("invalid_json") from error
    if not isinstance(parsed, (dict, list)):
        raise LogscrollDecodeError("not_structured")
    return parsed
