"""Logscroll exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.types import RunSummary


class LogscrollError(Exception):
    """Base exception for all Logscroll failures."""


class LogscrollConfigError(LogscrollError):
    """Raised for invalid runtime configuration or unknown profiles."""


class LogscrollDecodeError(LogscrollError):
    """Raised inside the payload decoder when a parse attempt fails."""


class LogscrollFetchError(LogscrollError):
    """Raised when the document source cannot serve a page.

    Attributes:
        summary: Partial run summary when raised out of a pipeline run.
    """

    def __init__(self, message: str, summary: "RunSummary | None" = None) -> None:
        super().__init__(message)
        self.summary = summary


class LogscrollLoadError(LogscrollError):
    """Raised when the record sink rejects a whole batch."""
