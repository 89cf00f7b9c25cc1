"""Application server launchers and the session-scoped server handle."""

from __future__ import annotations

import contextlib
import logging
import os
import shlex
import socket
import subprocess
import time
import typing as t

from .errors import LifecycleError, ServerStartError, UnknownServerError
from .registry import Registry

logger = logging.getLogger(__name__)

SAIL_SERVER_ENVIRONMENT: t.Final[dict[str, str]] = {
    "Verbose": "true",
    "APPMAP": "true",
    "DEBUG": "true",
}

_POLL_INTERVAL: t.Final[float] = 0.1
_CONNECT_TIMEOUT: t.Final[float] = 0.5
_SHUTDOWN_TIMEOUT: t.Final[float] = 10.0


class Launcher(t.Protocol):
    """Spawn the application server process."""

    def __call__(
        self,
        argv: t.Sequence[str],
        *,
        host: str,
        port: int,
        environment: t.Mapping[str, str],
    ) -> subprocess.Popen[bytes]: ...


def spawn_server(
    argv: t.Sequence[str],
    *,
    host: str,
    port: int,
    environment: t.Mapping[str, str],
) -> subprocess.Popen[bytes]:
    """Start *argv* with *environment* layered over the current environment."""
    env = {**os.environ, **environment}
    logger.info("Starting application server on %s:%d: %s", host, port, shlex.join(argv))
    return subprocess.Popen(list(argv), env=env)  # noqa: S603


def spawn_sail_server(
    argv: t.Sequence[str],
    *,
    host: str,
    port: int,
    environment: t.Mapping[str, str],
) -> subprocess.Popen[bytes]:
    """Start the server with verbose logging, recording and debug enabled."""
    return spawn_server(
        argv,
        host=host,
        port=port,
        environment={**environment, **SAIL_SERVER_ENVIRONMENT},
    )


class ServerRegistry(Registry[Launcher]):
    """Registry of named application server launchers."""

    def __init__(self) -> None:
        super().__init__("server", UnknownServerError)


def default_servers() -> ServerRegistry:
    """Return a registry holding the built-in launchers."""
    registry = ServerRegistry()
    registry.register("subprocess", spawn_server)
    registry.register("sail", spawn_sail_server)
    return registry


def find_free_port(host: str) -> int:
    """Ask the OS for an unused TCP port on *host*."""
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.bind((host, 0))
        return int(sock.getsockname()[1])


class AppServer:
    """Lazily started application server shared across a test session.

    Parameters
    ----------
    command : str | None
        Command line for the server. ``{host}`` and ``{port}`` placeholders
        are substituted after the port is chosen.
    launcher : Launcher
        Function that spawns the process.
    host : str
        Interface the server binds to.
    port : int
        Port to use, or ``0`` to pick a free one at boot time.
    startup_timeout : float
        Seconds to wait for the port to accept connections.
    environment : Mapping[str, str] | None
        Extra environment variables for the server process.
    """

    def __init__(
        self,
        command: str | None,
        *,
        launcher: Launcher = spawn_server,
        host: str = "127.0.0.1",
        port: int = 0,
        startup_timeout: float = 60.0,
        environment: t.Mapping[str, str] | None = None,
    ) -> None:
        if startup_timeout <= 0:
            msg = "startup_timeout must be > 0"
            raise ValueError(msg)
        self._command = command
        self._launcher = launcher
        self._bind_host = host
        self._requested_port = port
        self._startup_timeout = startup_timeout
        self._environment = dict(environment or {})
        self._process: subprocess.Popen[bytes] | None = None
        self._port: int | None = None

    @property
    def is_running(self) -> bool:
        """Return ``True`` while the server process is alive."""
        return self._process is not None and self._process.poll() is None

    @property
    def host(self) -> str:
        """Return the host of the booted server."""
        self._require_booted()
        return self._bind_host

    @property
    def port(self) -> int:
        """Return the port of the booted server."""
        self._require_booted()
        return t.cast("int", self._port)

    @property
    def base_url(self) -> str:
        """Return ``http://host:port`` for the booted server."""
        return f"http://{self.host}:{self.port}"

    def _require_booted(self) -> None:
        if self._process is None:
            msg = "The application server has not been booted yet"
            raise LifecycleError(msg)

    def boot(self) -> AppServer:
        """Start the server unless it is already running."""
        if self._process is not None:
            return self
        if not self._command:
            msg = (
                "No application server command configured; set the "
                "sail_server_command ini option or --sail-server-command"
            )
            raise ServerStartError(msg)

        port = self._requested_port or find_free_port(self._bind_host)
        argv = [
            part.format(host=self._bind_host, port=port)
            for part in shlex.split(self._command)
        ]
        try:
            process = self._launcher(
                argv,
                host=self._bind_host,
                port=port,
                environment=self._environment,
            )
        except OSError as exc:
            msg = f"Could not launch the application server: {exc}"
            raise ServerStartError(msg) from exc

        self._process = process
        self._port = port
        try:
            self._wait_until_ready()
        except ServerStartError:
            self.shutdown()
            raise
        logger.info("Application server ready at %s", self.base_url)
        return self

    def _wait_until_ready(self) -> None:
        process = t.cast("subprocess.Popen[bytes]", self._process)
        deadline = time.monotonic() + self._startup_timeout
        address = (self._bind_host, t.cast("int", self._port))
        while time.monotonic() < deadline:
            returncode = process.poll()
            if returncode is not None:
                msg = f"Application server exited with status {returncode} during startup"
                raise ServerStartError(msg)
            try:
                with socket.create_connection(address, timeout=_CONNECT_TIMEOUT):
                    return
            except OSError:
                time.sleep(_POLL_INTERVAL)
        msg = (
            f"Application server did not accept connections on "
            f"{address[0]}:{address[1]} within {self._startup_timeout:.1f}s"
        )
        raise ServerStartError(msg)

    def shutdown(self) -> None:
        """Terminate the server process, killing it if it does not exit."""
        process = self._process
        self._process = None
        self._port = None
        if process is None or process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=_SHUTDOWN_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning("Application server ignored SIGTERM; killing it")
            process.kill()
            process.wait()
