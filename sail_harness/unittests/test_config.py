"""Unit tests for harness configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from sail_harness.config import DEFAULT_MAX_WAIT_TIME, HarnessConfig
from sail_harness.database import DEFAULT_KEEP_TABLES, CleaningStrategy
from sail_harness.drivers import HEADLESS_CHROME


def test_defaults() -> None:
    """Defaults match the stock harness setup."""
    config = HarnessConfig()
    assert config.driver == HEADLESS_CHROME
    assert config.server == "sail"
    assert config.max_wait_time == DEFAULT_MAX_WAIT_TIME == 9999
    assert config.retry_attempts == 3
    assert config.recording is True
    assert config.database is None
    assert config.keep_tables == DEFAULT_KEEP_TABLES


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"retry_attempts": 0}, "max_attempts"),
        ({"retry_delay": -0.5}, "retry_delay"),
        ({"max_wait_time": 0}, "sail_max_wait_time"),
        ({"max_wait_time": float("nan")}, "sail_max_wait_time"),
        ({"server_port": 70000}, "sail_server_port"),
        ({"server_startup_timeout": 0}, "sail_server_startup_timeout"),
        ({"server_startup_timeout": -5.0}, "sail_server_startup_timeout"),
    ],
)
def test_invalid_values(kwargs: dict[str, float], message: str) -> None:
    """Out-of-range values are rejected at construction."""
    with pytest.raises(ValueError, match=message):
        HarnessConfig(**kwargs)  # type: ignore[arg-type]


def test_retry_config_override() -> None:
    """A marker can override the attempt count but keeps the delay."""
    config = HarnessConfig(retry_attempts=3, retry_delay=0.5)
    retry = config.retry_config(5)
    assert retry.max_attempts == 5
    assert retry.retry_delay == 0.5


def test_browsers_path_only_on_ci() -> None:
    """The browser install directory is only exported on CI."""
    assert HarnessConfig().effective_browsers_path is None
    on_ci = HarnessConfig(on_ci=True, browsers_path=Path("~/bin/playwright"))
    assert on_ci.effective_browsers_path == Path.home() / "bin" / "playwright"


def test_from_pytest_reads_ini(pytester: pytest.Pytester) -> None:
    """ini values are parsed and converted."""
    pytester.makeini(
        """
        [pytest]
        sail_database = db/test.sqlite3
        sail_database_strategy = deletion
        sail_keep_tables =
            schema_migrations
            sail_profiles
        sail_server_command = bin/rails server -p {port}
        sail_server_port = 3001
        sail_max_wait_time = 30
        sail_retry_attempts = 5
        sail_recording = false
        sail_recording_dir = tmp/appmap
        sail_current_user_target = app.ApplicationController.current_user
        """
    )
    config = HarnessConfig.from_pytest(pytester.parseconfig(), environ={})

    assert config.database == Path("db/test.sqlite3")
    assert config.database_strategy is CleaningStrategy.DELETION
    assert config.keep_tables == ("schema_migrations", "sail_profiles")
    assert config.server_command == "bin/rails server -p {port}"
    assert config.server_port == 3001
    assert config.max_wait_time == 30
    assert config.retry_attempts == 5
    assert config.recording is False
    assert config.recording_dir == Path("tmp/appmap")
    assert config.current_user_target == "app.ApplicationController.current_user"
    assert config.on_ci is False


def test_cli_overrides_ini(pytester: pytest.Pytester) -> None:
    """Command-line options win over ini settings."""
    pytester.makeini(
        """
        [pytest]
        sail_driver = headless_chrome
        sail_recording = false
        """
    )
    config = HarnessConfig.from_pytest(
        pytester.parseconfig("--sail-driver=chrome", "--sail-recording", "--sail-seed=7"),
        environ={"ON_CI": "true"},
    )

    assert config.driver == "chrome"
    assert config.recording is True
    assert config.seed == 7
    assert config.on_ci is True


def test_invalid_ini_is_usage_error(pytester: pytest.Pytester) -> None:
    """Bad configuration aborts the run with a usage error."""
    pytester.makeini(
        """
        [pytest]
        sail_retry_attempts = 0
        """
    )
    pytester.makepyfile("def test_nothing(): pass")

    result = pytester.runpytest()

    assert result.ret == pytest.ExitCode.USAGE_ERROR
    result.stderr.fnmatch_lines(["*Invalid sail configuration*max_attempts*"])


def test_invalid_startup_timeout_is_usage_error(pytester: pytest.Pytester) -> None:
    """A non-positive server startup timeout is rejected before any example runs."""
    pytester.makeini(
        """
        [pytest]
        sail_server_startup_timeout = 0
        """
    )
    pytester.makepyfile("def test_nothing(): pass")

    result = pytester.runpytest()

    assert result.ret == pytest.ExitCode.USAGE_ERROR
    result.stderr.fnmatch_lines(
        ["*Invalid sail configuration*sail_server_startup_timeout must be > 0*"]
    )
