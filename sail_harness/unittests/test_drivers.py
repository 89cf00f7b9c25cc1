"""Unit tests for driver registration and the browser session."""

from __future__ import annotations

import os
import typing as t
from unittest import mock

import pytest
from playwright import sync_api as playwright_sync_api

from sail_harness.drivers import (
    BROWSERS_PATH_ENV,
    CHROME,
    HEADLESS_CHROME,
    BrowserSession,
    DriverSpec,
    default_drivers,
)
from sail_harness.errors import UnknownDriverError

if t.TYPE_CHECKING:
    from pathlib import Path


def test_builtin_drivers_registered() -> None:
    """Visible and headless Chrome are available out of the box."""
    registry = default_drivers()
    assert registry.names() == [CHROME, HEADLESS_CHROME]


def test_headless_chrome_launch_options() -> None:
    """Headless Chrome runs sandbox-free in a fixed-size window."""
    spec = default_drivers().spec(HEADLESS_CHROME)

    options = spec.launch_options()
    assert options["headless"] is True
    assert options["args"] == [
        "--headless",
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--window-size=1920,1180",
        "--disable-gpu",
    ]
    assert spec.context_options() == {"viewport": {"width": 1920, "height": 1180}}


def test_chrome_is_visible() -> None:
    """The plain chrome driver opens a visible Chrome window."""
    spec = default_drivers().spec(CHROME)
    assert spec.launch_options() == {"headless": False, "channel": "chrome"}
    assert spec.context_options() == {}


def test_register_replaces_driver() -> None:
    """Suites may override a built-in driver."""
    registry = default_drivers()
    registry.register(HEADLESS_CHROME, lambda: DriverSpec(name="firefox", browser="firefox"))
    assert registry.spec(HEADLESS_CHROME).browser == "firefox"


def test_unknown_driver() -> None:
    """Looking up an unregistered driver names the known ones."""
    with pytest.raises(UnknownDriverError, match="headless_chrome"):
        default_drivers().spec("safari")


def test_empty_name_rejected() -> None:
    """Drivers need a name."""
    with pytest.raises(ValueError, match="non-empty"):
        default_drivers().register("", lambda: DriverSpec(name=""))


@pytest.fixture
def fake_playwright(monkeypatch: pytest.MonkeyPatch) -> mock.MagicMock:
    """Replace ``sync_playwright`` with a mock returning a fake Playwright."""
    playwright = mock.MagicMock(name="playwright")
    manager = mock.MagicMock(name="sync_playwright")
    manager.return_value.start.return_value = playwright
    monkeypatch.setattr("playwright.sync_api.sync_playwright", manager)
    return playwright


def test_browser_launches_lazily(fake_playwright: mock.MagicMock) -> None:
    """Nothing is launched until the first page is requested."""
    session = BrowserSession(default_drivers().spec(HEADLESS_CHROME), max_wait_time=5)
    assert not session.is_started
    fake_playwright.chromium.launch.assert_not_called()

    session.new_page(base_url="http://127.0.0.1:3000")
    session.new_page()

    assert session.is_started
    fake_playwright.chromium.launch.assert_called_once()
    browser = fake_playwright.chromium.launch.return_value
    first_call = browser.new_context.call_args_list[0]
    assert first_call.kwargs["base_url"] == "http://127.0.0.1:3000"
    assert first_call.kwargs["viewport"] == {"width": 1920, "height": 1180}
    context = browser.new_context.return_value
    context.set_default_timeout.assert_called_with(5000)


def test_browser_close_stops_playwright(fake_playwright: mock.MagicMock) -> None:
    """close() closes the browser and stops Playwright."""
    session = BrowserSession(default_drivers().spec(HEADLESS_CHROME), max_wait_time=1)
    session.start()

    session.close()

    fake_playwright.chromium.launch.return_value.close.assert_called_once()
    fake_playwright.stop.assert_called_once()
    assert not session.is_started


def test_failed_launch_stops_playwright(fake_playwright: mock.MagicMock) -> None:
    """Playwright is stopped again when the browser fails to launch."""
    fake_playwright.chromium.launch.side_effect = RuntimeError("no chromium")
    session = BrowserSession(default_drivers().spec(HEADLESS_CHROME), max_wait_time=1)

    with pytest.raises(RuntimeError, match="no chromium"):
        session.start()

    fake_playwright.stop.assert_called_once()
    assert not session.is_started


def test_browsers_path_exported_only_while_starting(
    fake_playwright: mock.MagicMock,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    """The driver sees the install directory; the test process keeps its env."""
    monkeypatch.setenv(BROWSERS_PATH_ENV, "unset")
    monkeypatch.delenv(BROWSERS_PATH_ENV)
    seen: list[str | None] = []
    manager = playwright_sync_api.sync_playwright
    manager.return_value.start.side_effect = lambda: (
        seen.append(os.environ.get(BROWSERS_PATH_ENV)) or fake_playwright
    )
    session = BrowserSession(
        default_drivers().spec(HEADLESS_CHROME),
        max_wait_time=1,
        browsers_path=tmp_path,
    )

    session.start()

    assert seen == [str(tmp_path)]
    assert BROWSERS_PATH_ENV not in os.environ


def test_existing_browsers_path_wins(
    fake_playwright: mock.MagicMock,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    """A browsers path already set by the caller is neither replaced nor removed."""
    monkeypatch.setenv(BROWSERS_PATH_ENV, "/opt/browsers")
    session = BrowserSession(
        default_drivers().spec(HEADLESS_CHROME),
        max_wait_time=1,
        browsers_path=tmp_path,
    )

    session.start()

    assert os.environ[BROWSERS_PATH_ENV] == "/opt/browsers"
