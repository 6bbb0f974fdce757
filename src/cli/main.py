"""Logscroll CLI entry points.
This module exposes the ``run`` and ``profiles`` commands.
It maps argparse commands onto pipeline calls.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from datetime import date, datetime, time, tzinfo
import sys
from typing import Any, Sequence

from core.config import (
    LogscrollConfig,
    parse_empty_record_policy,
    parse_keep_alive,
    resolve_time_zone,
)
from core.constants import (
    DEFAULT_PROFILE_NAME,
    EMPTY_RECORDS_KEEP,
    EXIT_CODE_CONFIG_ERROR,
    EXIT_CODE_FAILURE,
    EXIT_CODE_SUCCESS,
)
from core.errors import LogscrollConfigError, LogscrollFetchError, LogscrollLoadError
from core.logging_config import configure_logging
from core.types import RunOptions, RunSummary, SearchCriteria, SearchWindow
from ingest.pipeline import run_scroll_load
from transforms.extraction_profiles import ProfileRegistry, default_profile_registry


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="logscroll",
        description="Scroll log documents out of Elasticsearch and load them into SQL",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_run_command(subparsers)
    _add_profiles_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Logscroll CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    registry = default_profile_registry()
    if args.command == "profiles":
        return _run_profiles_command(registry)
    if args.command == "run":
        return _run_run_command(registry, args)
    parser.error(f"Unsupported command: {args.command}")
    return EXIT_CODE_CONFIG_ERROR


def resolve_window_bound(raw_value: str, zone: tzinfo) -> datetime:
    """Resolve a CLI date or datetime into an absolute instant.

    Args:
        raw_value: ``YYYY-MM-DD`` or an ISO-8601 datetime.
        zone: Zone applied to dates and naive datetimes.

    Returns:
        Timezone-aware datetime.

    Raises:
        LogscrollConfigError: If the value cannot be parsed.
    """
    value = raw_value.strip()
    try:
        if len(value) == 10:
            return datetime.combine(date.fromisoformat(value), time.min, tzinfo=zone)
        parsed = datetime.fromisoformat(value)
    except ValueError as error:
        raise LogscrollConfigError(
            f"Invalid date '{raw_value}'. Use YYYY-MM-DD or an ISO-8601 datetime."
        ) from error
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=zone)
    return parsed


def _run_profiles_command(registry: ProfileRegistry) -> int:
    """Handle profiles command.

    Args:
        registry: Profile registry.

    Returns:
        Exit code.
    """
    for name in registry.names():
        profile = registry.get(name)
        print(f"{profile.name}\t{profile.kind}\t{profile.target.table_name}")
    return EXIT_CODE_SUCCESS


def _run_run_command(registry: ProfileRegistry, args: argparse.Namespace) -> int:
    """Handle run command.

    Args:
        registry: Profile registry.
        args: Parsed CLI args.

    Returns:
        Exit code.
    """
    try:
        registry.get(args.profile)
        config = LogscrollConfig.from_env()
        configure_logging(config.log_level)
        options = _build_run_options(args, config)
        summary = run_scroll_load(options, config, registry)
    except LogscrollConfigError as error:
        print(f"error: {error}", file=sys.stderr)
        return EXIT_CODE_CONFIG_ERROR
    except LogscrollFetchError as error:
        print(f"error: {error}", file=sys.stderr)
        if error.summary is not None:
            _print_summary(error.summary)
        return EXIT_CODE_FAILURE
    except LogscrollLoadError as error:
        print(f"error: {error}", file=sys.stderr)
        return EXIT_CODE_FAILURE
    _print_summary(summary)
    return summary.exit_code


def _build_run_options(args: argparse.Namespace, config: LogscrollConfig) -> RunOptions:
    """Combine CLI arguments with configured defaults.

    Raises:
        LogscrollConfigError: If any argument is invalid.
    """
    zone = resolve_time_zone(args.time_zone or config.time_zone)
    window = SearchWindow(
        start=resolve_window_bound(args.start, zone),
        end=resolve_window_bound(args.end, zone),
    )
    empty_policy = config.empty_record_policy
    if args.empty_records:
        empty_policy = parse_empty_record_policy(args.empty_records)
    options = RunOptions(
        profile_name=args.profile,
        window=window,
        criteria=SearchCriteria(match=dict(args.match), match_phrase=dict(args.match_phrase)),
        page_size=config.page_size,
        batch_size=config.batch_size,
        keep_alive=config.scroll_keep_alive,
        projection_workers=config.projection_workers,
        keep_empty_records=empty_policy == EMPTY_RECORDS_KEEP,
    )
    overrides: dict[str, Any] = {}
    if args.page_size is not None:
        overrides["page_size"] = _require_positive("--page-size", args.page_size)
    if args.batch_size is not None:
        overrides["batch_size"] = _require_positive("--batch-size", args.batch_size)
    if args.workers is not None:
        overrides["projection_workers"] = _require_positive("--workers", args.workers)
    if args.keep_alive is not None:
        overrides["keep_alive"] = parse_keep_alive(args.keep_alive)
    return replace(options, **overrides)


def _require_positive(flag: str, value: int) -> int:
    if value <= 0:
        raise LogscrollConfigError(f"Invalid {flag} value {value}: expected > 0.")
    return value


def _print_summary(summary: RunSummary) -> None:
    for key, value in summary.as_dict().items():
        print(f"{key}={'-' if value is None else value}")


def _parse_assignment(raw_value: str) -> tuple[str, str]:
    field_name, separator, value = raw_value.partition("=")
    if not separator or not field_name.strip():
        raise argparse.ArgumentTypeError(f"expected FIELD=VALUE, got '{raw_value}'")
    return field_name.strip(), value


def _add_run_command(subparsers: Any) -> None:
    """Register run subcommand."""
    parser = subparsers.add_parser(
        "run",
        help="Scroll a time window and load it into SQL",
        description=(
            "Scroll a time window and load it into SQL. The profile's target table "
            "(user_login or bukopin_data) must already exist with its unique constraint."
        ),
    )
    parser.add_argument("start", help="Inclusive window start, YYYY-MM-DD or ISO datetime")
    parser.add_argument("end", help="Exclusive window end, YYYY-MM-DD or ISO datetime")
    parser.add_argument(
        "--profile",
        default=DEFAULT_PROFILE_NAME,
        help="Extraction profile name (see 'logscroll profiles')",
    )
    parser.add_argument(
        "--match",
        action="append",
        default=[],
        type=_parse_assignment,
        metavar="FIELD=VALUE",
        help="Extra match clause, overrides the profile default for FIELD",
    )
    parser.add_argument(
        "--match-phrase",
        action="append",
        default=[],
        type=_parse_assignment,
        metavar="FIELD=PHRASE",
        help="Extra match_phrase clause",
    )
    parser.add_argument("--time-zone", help="Zone for date arguments, e.g. +08:00")
    parser.add_argument("--page-size", type=int, help="Documents per scroll page")
    parser.add_argument("--batch-size", type=int, help="Records per insert batch")
    parser.add_argument("--workers", type=int, help="Projection threads per page")
    parser.add_argument("--keep-alive", help="Scroll keep-alive, e.g. 5m")
    parser.add_argument(
        "--empty-records",
        choices=("drop", "keep"),
        help="Drop or keep structured records whose fields are all empty",
    )


def _add_profiles_command(subparsers: Any) -> None:
    """Register profiles subcommand."""
    subparsers.add_parser("profiles", help="List extraction profiles")
