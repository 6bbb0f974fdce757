"""Core constants used across Logscroll modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

DEFAULT_PAGE_SIZE = 6000
DEFAULT_BATCH_SIZE = 1000
DEFAULT_SCROLL_KEEP_ALIVE = "5m"
DEFAULT_PROJECTION_WORKERS = 4
DEFAULT_REQUEST_TIMEOUT_SECONDS = 300
DEFAULT_TIME_ZONE = "+08:00"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_PROFILE_NAME = "retrieve_user_info"
TIMESTAMP_FIELD = "@timestamp"
SUBJECT_FIELD = "uid"
PAYLOAD_FIELD = "payload"
HASH_ALGORITHM = "sha256"
EMPTY_RECORDS_DROP = "drop"
EMPTY_RECORDS_KEEP = "keep"
SUPPORTED_EMPTY_RECORD_POLICIES = (EMPTY_RECORDS_DROP, EMPTY_RECORDS_KEEP)
EXIT_CODE_SUCCESS = 0
EXIT_CODE_FAILURE = 1
EXIT_CODE_CONFIG_ERROR = 2
