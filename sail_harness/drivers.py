"""Browser driver registration and the session-scoped browser."""

from __future__ import annotations

import contextlib
import dataclasses as dc
import logging
import os
import typing as t
from pathlib import Path

from .errors import UnknownDriverError
from .registry import Registry

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from playwright.sync_api import Browser, Page, Playwright

logger = logging.getLogger(__name__)

CHROME: t.Final[str] = "chrome"
HEADLESS_CHROME: t.Final[str] = "headless_chrome"

HEADLESS_CHROME_ARGS: t.Final[tuple[str, ...]] = (
    "--headless",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--window-size=1920,1180",
    "--disable-gpu",
)
HEADLESS_WINDOW_SIZE: t.Final[tuple[int, int]] = (1920, 1180)

BROWSERS_PATH_ENV: t.Final[str] = "PLAYWRIGHT_BROWSERS_PATH"


@dc.dataclass(frozen=True, slots=True)
class DriverSpec:
    """Launch configuration for one browser backend."""

    name: str
    browser: str = "chromium"
    headless: bool = True
    channel: str | None = None
    args: tuple[str, ...] = ()
    viewport: tuple[int, int] | None = None

    def launch_options(self) -> dict[str, t.Any]:
        """Return keyword arguments for ``BrowserType.launch``."""
        options: dict[str, t.Any] = {"headless": self.headless}
        if self.channel is not None:
            options["channel"] = self.channel
        if self.args:
            options["args"] = list(self.args)
        return options

    def context_options(self) -> dict[str, t.Any]:
        """Return keyword arguments for ``Browser.new_context``."""
        if self.viewport is None:
            return {}
        width, height = self.viewport
        return {"viewport": {"width": width, "height": height}}


DriverFactory = t.Callable[[], DriverSpec]


def chrome_driver() -> DriverSpec:
    """Visible Chrome, useful when debugging an example locally."""
    return DriverSpec(name=CHROME, headless=False, channel="chrome")


def headless_chrome_driver() -> DriverSpec:
    """Headless Chromium with a fixed window and the sandbox disabled."""
    return DriverSpec(
        name=HEADLESS_CHROME,
        headless=True,
        args=HEADLESS_CHROME_ARGS,
        viewport=HEADLESS_WINDOW_SIZE,
    )


class DriverRegistry(Registry[DriverFactory]):
    """Registry of named browser driver factories."""

    def __init__(self) -> None:
        super().__init__("driver", UnknownDriverError)

    def spec(self, name: str) -> DriverSpec:
        """Build the :class:`DriverSpec` registered under *name*."""
        return self.get(name)()


def default_drivers() -> DriverRegistry:
    """Return a registry holding the built-in drivers."""
    registry = DriverRegistry()
    registry.register(CHROME, chrome_driver)
    registry.register(HEADLESS_CHROME, headless_chrome_driver)
    return registry


@contextlib.contextmanager
def _exported_browsers_path(path: Path | None) -> t.Iterator[None]:
    """Expose *path* to the Playwright driver process while it starts.

    An existing ``PLAYWRIGHT_BROWSERS_PATH`` wins and is left untouched.
    """
    if path is None or BROWSERS_PATH_ENV in os.environ:
        yield
        return
    os.environ[BROWSERS_PATH_ENV] = str(path)
    try:
        yield
    finally:
        os.environ.pop(BROWSERS_PATH_ENV, None)


class BrowserSession:
    """One Playwright browser shared by every example of a test session.

    The browser is launched on the first :meth:`new_page` call and stays up
    until :meth:`close`.

    Parameters
    ----------
    spec : DriverSpec
        The driver to launch.
    max_wait_time : float
        Default wait for page actions and assertions, in seconds.
    browsers_path : Path | None
        Browser install directory handed to the Playwright driver when it
        starts. The process environment is restored afterwards.
    """

    def __init__(
        self,
        spec: DriverSpec,
        *,
        max_wait_time: float,
        browsers_path: Path | None = None,
    ) -> None:
        self.spec = spec
        self._max_wait_ms = max_wait_time * 1000
        self._browsers_path = browsers_path
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    @property
    def is_started(self) -> bool:
        """Return ``True`` once the browser has been launched."""
        return self._browser is not None

    def start(self) -> Browser:
        """Launch the browser if needed and return it."""
        if self._browser is not None:
            return self._browser

        from playwright.sync_api import sync_playwright

        with _exported_browsers_path(self._browsers_path):
            playwright = sync_playwright().start()
        try:
            browser_type = getattr(playwright, self.spec.browser)
            browser = browser_type.launch(**self.spec.launch_options())
        except Exception:
            playwright.stop()
            raise
        self._playwright = playwright
        self._browser = browser
        logger.info("Launched %s browser (%s)", self.spec.name, self.spec.browser)
        return browser

    def new_page(self, base_url: str | None = None) -> Page:
        """Open a page in a fresh browser context."""
        browser = self.start()
        options = self.spec.context_options()
        if base_url is not None:
            options["base_url"] = base_url
        context = browser.new_context(**options)
        context.set_default_timeout(self._max_wait_ms)
        return context.new_page()

    def close(self) -> None:
        """Close the browser and stop Playwright."""
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        try:
            if browser is not None:
                browser.close()
        finally:
            if playwright is not None:
                playwright.stop()
