"""Runtime configuration model for Logscroll.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta, timezone, tzinfo
import os
import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PAGE_SIZE,
    DEFAULT_PROJECTION_WORKERS,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_SCROLL_KEEP_ALIVE,
    DEFAULT_TIME_ZONE,
    EMPTY_RECORDS_DROP,
    SUPPORTED_EMPTY_RECORD_POLICIES,
)
from core.errors import LogscrollConfigError

_UTC_OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):?(\d{2})$")
_KEEP_ALIVE_PATTERN = re.compile(r"^\d+(ms|s|m|h|d)$")


@dataclass(frozen=True)
class ElasticsearchSettings:
    """Connection settings for the search backend.

    Attributes:
        cloud_id: Elastic Cloud deployment id, when connecting to Elastic Cloud.
        node_url: Direct node URL, used when no cloud id is configured.
        api_key: API key used for authentication.
        index_pattern: Index or index pattern to search.
        request_timeout: Per-request timeout in seconds.
    """

    cloud_id: str | None
    node_url: str | None
    api_key: str
    index_pattern: str
    request_timeout: int


@dataclass(frozen=True)
class LogscrollConfig:
    """Validated runtime configuration.

    Attributes:
        elasticsearch: Search backend connection settings.
        database_url: SQLAlchemy URL of the target database.
        page_size: Documents requested per scroll page.
        scroll_keep_alive: Scroll liveness window renewed on every fetch.
        batch_size: Records per insert batch.
        projection_workers: Threads used to project one page.
        time_zone: Zone used to resolve calendar dates into instants.
        empty_record_policy: Whether records without fields are dropped or kept.
        log_level: Minimum structured log level.
    """

    elasticsearch: ElasticsearchSettings
    database_url: str
    page_size: int = DEFAULT_PAGE_SIZE
    scroll_keep_alive: str = DEFAULT_SCROLL_KEEP_ALIVE
    batch_size: int = DEFAULT_BATCH_SIZE
    projection_workers: int = DEFAULT_PROJECTION_WORKERS
    time_zone: str = DEFAULT_TIME_ZONE
    empty_record_policy: str = EMPTY_RECORDS_DROP
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> "LogscrollConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            LogscrollConfigError: If required values are missing or invalid.
        """
        elasticsearch = ElasticsearchSettings(
            cloud_id=os.getenv("ELASTIC_CLOUD_ID") or None,
            node_url=os.getenv("ELASTIC_NODE") or None,
            api_key=_require_env("ELASTIC_API_KEY"),
            index_pattern=_require_env("ELASTIC_INDEX_PATTERN"),
            request_timeout=_parse_positive_int(
                "LOGSCROLL_REQUEST_TIMEOUT",
                os.getenv("LOGSCROLL_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT_SECONDS)),
            ),
        )
        if not elasticsearch.cloud_id and not elasticsearch.node_url:
            raise LogscrollConfigError(
                "Missing search backend location: set ELASTIC_CLOUD_ID or ELASTIC_NODE."
            )
        time_zone = os.getenv("LOGSCROLL_TIME_ZONE", DEFAULT_TIME_ZONE)
        resolve_time_zone(time_zone)
        return cls(
            elasticsearch=elasticsearch,
            database_url=_require_env("LOGSCROLL_DATABASE_URL"),
            page_size=_parse_positive_int(
                "LOGSCROLL_PAGE_SIZE", os.getenv("LOGSCROLL_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))
            ),
            scroll_keep_alive=parse_keep_alive(
                os.getenv("LOGSCROLL_SCROLL_KEEP_ALIVE", DEFAULT_SCROLL_KEEP_ALIVE)
            ),
            batch_size=_parse_positive_int(
                "LOGSCROLL_BATCH_SIZE", os.getenv("LOGSCROLL_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))
            ),
            projection_workers=_parse_positive_int(
                "LOGSCROLL_PROJECTION_WORKERS",
                os.getenv("LOGSCROLL_PROJECTION_WORKERS", str(DEFAULT_PROJECTION_WORKERS)),
            ),
            time_zone=time_zone,
            empty_record_policy=parse_empty_record_policy(
                os.getenv("LOGSCROLL_EMPTY_RECORDS", EMPTY_RECORDS_DROP)
            ),
            log_level=os.getenv("LOGSCROLL_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        )


def resolve_time_zone(name: str) -> tzinfo:
    """Resolve a UTC offset (``+08:00``) or IANA zone name into tzinfo.

    Raises:
        LogscrollConfigError: If the zone cannot be resolved.
    """
    if name.upper() in ("UTC", "Z"):
        return timezone.utc
    offset_match = _UTC_OFFSET_PATTERN.match(name)
    if offset_match:
        sign, hours, minutes = offset_match.groups()
        delta = timedelta(hours=int(hours), minutes=int(minutes))
        return timezone(-delta if sign == "-" else delta)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as error:
        raise LogscrollConfigError(
            f"Invalid time zone '{name}'. Use a UTC offset like +08:00 or an IANA zone name."
        ) from error


def parse_keep_alive(raw_value: str) -> str:
    """Validate a scroll keep-alive duration such as ``5m``.

    Raises:
        LogscrollConfigError: If the value is not a duration literal.
    """
    value = raw_value.strip()
    if not _KEEP_ALIVE_PATTERN.match(value):
        raise LogscrollConfigError(
            f"Invalid scroll keep-alive '{raw_value}'. Use a duration like 30s, 5m or 1h."
        )
    return value


def parse_empty_record_policy(raw_value: str) -> str:
    """Validate the empty-record policy name.

    Raises:
        LogscrollConfigError: If the policy is unknown.
    """
    value = raw_value.strip().lower()
    if value not in SUPPORTED_EMPTY_RECORD_POLICIES:
        raise LogscrollConfigError(
            f"Invalid empty-record policy '{raw_value}'. "
            f"Expected one of: {', '.join(SUPPORTED_EMPTY_RECORD_POLICIES)}."
        )
    return value


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise LogscrollConfigError(
            f"Missing required environment variable {name}. Set it before running logscroll."
        )
    return value


def _parse_positive_int(name: str, raw_value: str) -> int:
    """Parse a positive integer environment value.

    Args:
        name: Variable name for error context.
        raw_value: Raw string from environment.

    Returns:
        Parsed integer.

    Raises:
        LogscrollConfigError: If value is not a positive integer.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise LogscrollConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a positive numeric value."
        ) from error
    if value <= 0:
        raise LogscrollConfigError(f"Invalid {name} value: expected > 0, got {value}.")
    return value
