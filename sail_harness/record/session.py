"""RemoteRecorder: start and stop the out-of-process recorder over HTTP.

The recorder sidecar runs inside the application server under test and
exposes a single endpoint. ``POST`` opens a recording, ``DELETE`` closes it
and returns the serialized recording as the response body.

Lifecycle: ``IDLE`` -> ``start()`` -> ``RECORDING`` -> ``stop()`` -> ``IDLE``.
There is one recorder per application server, so at most one recording can
be open at a time.
"""

from __future__ import annotations

import contextlib
import enum
import logging
import typing as t

import httpx

from sail_harness.errors import LifecycleError, RecorderStopError

from .artifact import RecordingArtifact

logger = logging.getLogger(__name__)

RECORD_PATH: t.Final[str] = "/_appmap/record"


class ServerAddress(t.Protocol):
    """Anything exposing the host and port of a running server."""

    @property
    def host(self) -> str: ...

    @property
    def port(self) -> int: ...


class RecorderState(enum.StrEnum):
    """States of the remote recorder as seen from the harness."""

    IDLE = "IDLE"
    RECORDING = "RECORDING"


class RecordingHandle:
    """Collects the artifact produced by :meth:`RemoteRecorder.recording`."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.artifact: RecordingArtifact | None = None


class RemoteRecorder:
    """Drive the recording endpoint of a live application server.

    Parameters
    ----------
    client : httpx.Client
        HTTP client used for both calls. Its default timeouts apply.
    server : ServerAddress
        The application server. Host and port are read on every call, so the
        server may be booted after the recorder is created.
    """

    def __init__(self, client: httpx.Client, server: ServerAddress) -> None:
        self._client = client
        self._server = server
        self._state = RecorderState.IDLE
        self._current: str | None = None

    @property
    def state(self) -> RecorderState:
        """Return the current recorder state."""
        return self._state

    @property
    def url(self) -> str:
        """Return the recording endpoint of the live server."""
        return f"http://{self._server.host}:{self._server.port}{RECORD_PATH}"

    def start(self, name: str = "recording") -> None:
        """Ask the recorder to begin a recording.

        Failures are logged and ignored; the harness treats the recording as
        open either way so that :meth:`stop` is still issued.

        Raises
        ------
        LifecycleError
            If a recording is already open.
        """
        if self._state is RecorderState.RECORDING:
            msg = (
                f"Cannot start recording {name!r}: {self._current!r} is still "
                "recording"
            )
            raise LifecycleError(msg)

        url = self.url
        try:
            self._client.post(url)
        except httpx.HTTPError as exc:
            logger.warning("Starting remote recording at %s failed: %s", url, exc)
        self._state = RecorderState.RECORDING
        self._current = name
        logger.debug("Remote recording %r started", name)

    def stop(self) -> RecordingArtifact:
        """Close the open recording and return its artifact.

        The recorder returns to ``IDLE`` whether or not the call succeeds.

        Raises
        ------
        LifecycleError
            If no recording is open.
        RecorderStopError
            If the recorder answers with a non-2xx status or cannot be reached.
        """
        if self._state is not RecorderState.RECORDING:
            msg = "Cannot stop the remote recorder: no recording is open"
            raise LifecycleError(msg)

        name = self._current or "recording"
        url = self.url
        try:
            response = self._client.delete(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RecorderStopError(url, exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            raise RecorderStopError(url, None) from exc
        finally:
            self._state = RecorderState.IDLE
            self._current = None

        logger.debug("Remote recording %r stopped (%d bytes)", name, len(response.content))
        return RecordingArtifact(name=name, body=response.content)

    @contextlib.contextmanager
    def recording(self, name: str = "recording") -> t.Iterator[RecordingHandle]:
        """Record for the duration of the ``with`` block.

        The stop call runs on every exit path. When the block raised and the
        stop call fails as well, the body exception is logged and attached to
        the :class:`RecorderStopError` as ``example_error``.
        """
        handle = RecordingHandle(name)
        self.start(name)
        try:
            yield handle
        except BaseException as body_exc:
            try:
                handle.artifact = self.stop()
            except RecorderStopError as stop_exc:
                logger.exception(
                    "Example %r failed before the recorder stop also failed",
                    name,
                    exc_info=body_exc,
                )
                stop_exc.example_error = body_exc
                raise
            raise
        else:
            handle.artifact = self.stop()
