"""Per-run context threading the harness resources through setup/teardown."""

from __future__ import annotations

import logging
import typing as t

from .database import DatabaseCleaner
from .drivers import BrowserSession, DriverRegistry, default_drivers
from .record import RemoteRecorder
from .server import AppServer, ServerRegistry, default_servers

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    import httpx

    from .config import HarnessConfig
    from .record import ServerAddress

logger = logging.getLogger(__name__)


class TestRunContext:
    """Own the long-lived resources of one test session.

    The application server and the browser are created on first use and
    reused by every example until :meth:`close`.
    """

    __test__ = False

    def __init__(
        self,
        config: HarnessConfig,
        *,
        drivers: DriverRegistry | None = None,
        servers: ServerRegistry | None = None,
    ) -> None:
        self.config = config
        self.drivers = drivers if drivers is not None else default_drivers()
        self.servers = servers if servers is not None else default_servers()
        self._cleaner: DatabaseCleaner | None = None
        self._server: AppServer | None = None
        self._browser: BrowserSession | None = None

    def cleaner(self) -> DatabaseCleaner | None:
        """Return the database cleaner, or ``None`` when no database is set."""
        if self.config.database is None:
            return None
        if self._cleaner is None:
            self._cleaner = DatabaseCleaner(
                self.config.database,
                strategy=self.config.database_strategy,
                keep_tables=self.config.keep_tables,
            )
        return self._cleaner

    def app_server(self) -> AppServer:
        """Return the application server, booting it on first use."""
        if self._server is None:
            self._server = AppServer(
                self.config.server_command,
                launcher=self.servers.get(self.config.server),
                host=self.config.server_host,
                port=self.config.server_port,
                startup_timeout=self.config.server_startup_timeout,
            )
        return self._server.boot()

    def browser(self) -> BrowserSession:
        """Return the browser session for the configured driver."""
        if self._browser is None:
            self._browser = BrowserSession(
                self.drivers.spec(self.config.driver),
                max_wait_time=self.config.max_wait_time,
                browsers_path=self.config.effective_browsers_path,
            )
        return self._browser

    def recorder(self, client: httpx.Client, server: ServerAddress) -> RemoteRecorder:
        """Return a recorder bound to *server*."""
        return RemoteRecorder(client, server)

    def close(self) -> None:
        """Tear down the browser, then the application server."""
        browser, server = self._browser, self._server
        self._browser = None
        self._server = None
        try:
            if browser is not None:
                browser.close()
        except Exception:
            logger.exception("Error while closing the browser session")
            raise
        finally:
            if server is not None:
                server.shutdown()
