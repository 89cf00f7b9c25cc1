"""Exception hierarchy for the Sail test harness."""

from __future__ import annotations


class SailHarnessError(Exception):
    """Base class for all harness errors."""


class LifecycleError(SailHarnessError):
    """Raised when a harness resource is used in the wrong state."""


class RecorderStopError(SailHarnessError):
    """Raised when the remote recorder refuses to stop a recording.

    Attributes
    ----------
    url : str
        The recording endpoint that was called.
    status_code : int | None
        HTTP status returned by the recorder, or ``None`` when the request
        never produced a response.
    example_error : BaseException | None
        The exception raised by the example body, when the stop call failed
        while that exception was already propagating.
    """

    def __init__(
        self,
        url: str,
        status_code: int | None,
        *,
        example_error: BaseException | None = None,
    ) -> None:
        if status_code is None:
            msg = f"Stopping the remote recording at {url} failed"
        else:
            msg = f"Stopping the remote recording at {url} failed with HTTP {status_code}"
        super().__init__(msg)
        self.url = url
        self.status_code = status_code
        self.example_error = example_error


class ServerStartError(SailHarnessError):
    """Raised when the application server does not come up."""


class UnknownDriverError(SailHarnessError, KeyError):
    """Raised when no browser driver is registered under a name."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class UnknownServerError(SailHarnessError, KeyError):
    """Raised when no server launcher is registered under a name."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


__all__ = [
    "LifecycleError",
    "RecorderStopError",
    "SailHarnessError",
    "ServerStartError",
    "UnknownDriverError",
    "UnknownServerError",
]
