"""Unit tests for CLI command handling."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

import cli.main as cli_main
from cli.main import main, resolve_window_bound
from core.errors import LogscrollConfigError, LogscrollFetchError, LogscrollLoadError
from core.types import RunSummary


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Provide a complete environment for the run command."""
    monkeypatch.delenv("ELASTIC_CLOUD_ID", raising=False)
    monkeypatch.delenv("LOGSCROLL_TIME_ZONE", raising=False)
    monkeypatch.setenv("ELASTIC_NODE", "http://localhost:9200")
    monkeypatch.setenv("ELASTIC_API_KEY", "secret")
    monkeypatch.setenv("ELASTIC_INDEX_PATTERN", "app-logs-*")
    monkeypatch.setenv("LOGSCROLL_DATABASE_URL", "sqlite:///logs.db")
    return monkeypatch


def test_cli_profiles_lists_builtin_profiles(capsys) -> None:
    """Profiles command should print one line per profile."""
    exit_code = main(["profiles"])
    output = capsys.readouterr().out.strip().splitlines()

    assert exit_code == 0
    assert output == ["retrieve_user_info\tstructured\tuser_login", "bukopin\traw_passthrough\tbukopin_data"]


def test_resolve_window_bound_applies_zone_to_dates() -> None:
    """Calendar dates resolve to midnight in the given zone."""
    zone = timezone(timedelta(hours=8))

    bound = resolve_window_bound("2025-01-15", zone)

    assert bound == datetime(2025, 1, 14, 16, tzinfo=timezone.utc)


def test_resolve_window_bound_keeps_explicit_offsets() -> None:
    """Datetimes carrying an offset are not re-zoned."""
    bound = resolve_window_bound("2025-01-15T06:30:00+00:00", timezone(timedelta(hours=8)))

    assert bound == datetime(2025, 1, 15, 6, 30, tzinfo=timezone.utc)


def test_resolve_window_bound_rejects_garbage() -> None:
    """Unparseable bounds are configuration errors."""
    with pytest.raises(LogscrollConfigError):
        resolve_window_bound("yesterday", timezone.utc)

    assert True


def test_cli_run_prints_summary(cli_env: pytest.MonkeyPatch, capsys) -> None:
    """Run command should pass resolved options and print the summary."""
    captured = {}

    def fake_run(options, config, registry):
        captured["options"] = options
        return RunSummary(fetched=3, pages=1, inserted=3)

    cli_env.setattr(cli_main, "run_scroll_load", fake_run)

    exit_code = main(
        ["run", "2025-01-15", "2025-01-17", "--match", "action=request", "--batch-size", "50"]
    )
    output = capsys.readouterr().out

    options = captured["options"]
    assert exit_code == 0 and "fetched=3" in output and "inserted=3" in output
    assert options.batch_size == 50 and options.criteria.match == {"action": "request"}
    assert options.window.start == datetime(2025, 1, 14, 16, tzinfo=timezone.utc)


def test_cli_run_returns_failure_for_degraded_run(cli_env: pytest.MonkeyPatch, capsys) -> None:
    """Failed batches should produce a non-zero exit code."""
    cli_env.setattr(
        cli_main,
        "run_scroll_load",
        lambda options, config, registry: RunSummary(fetched=4, inserted=2, load_failed=2),
    )

    exit_code = main(["run", "2025-01-15", "2025-01-17"])

    assert exit_code == 1 and "degraded=True" in capsys.readouterr().out


def test_cli_run_reports_fetch_failure_summary(cli_env: pytest.MonkeyPatch, capsys) -> None:
    """Fatal fetch errors still print the partial summary."""

    def failing_run(options, config, registry):
        raise LogscrollFetchError("scroll expired", summary=RunSummary(fetched=6000, inserted=6000))

    cli_env.setattr(cli_main, "run_scroll_load", failing_run)

    exit_code = main(["run", "2025-01-15", "2025-01-17"])
    captured = capsys.readouterr()

    assert exit_code == 1 and "fetched=6000" in captured.out and "scroll expired" in captured.err


def test_cli_run_rejects_reversed_window(cli_env: pytest.MonkeyPatch, capsys) -> None:
    """A window whose end precedes its start is a configuration error."""
    exit_code = main(["run", "2025-01-17", "2025-01-15"])

    assert exit_code == 2 and "error:" in capsys.readouterr().err


def test_cli_run_rejects_unknown_profile(cli_env: pytest.MonkeyPatch, capsys) -> None:
    """Unknown profiles fail before any configuration is read."""
    exit_code = main(["run", "2025-01-15", "2025-01-17", "--profile", "nope"])

    assert exit_code == 2 and "nope" in capsys.readouterr().err


def test_cli_run_reports_unreachable_database(cli_env: pytest.MonkeyPatch, capsys) -> None:
    """Database failures before scrolling exit with the failure code."""

    def failing_run(options, config, registry):
        raise LogscrollLoadError("Cannot inspect target database: connection refused")

    cli_env.setattr(cli_main, "run_scroll_load", failing_run)

    exit_code = main(["run", "2025-01-15", "2025-01-17"])

    assert exit_code == 1 and "connection refused" in capsys.readouterr().err
