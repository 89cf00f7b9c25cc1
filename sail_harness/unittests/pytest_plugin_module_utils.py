"""Utilities for constructing synthetic pytest projects in plugin tests."""

from __future__ import annotations

import textwrap
import typing as t

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    import pytest

RECORDER_LOG = "recorder.log"
ATTEMPTS_LOG = "attempts.log"

_RECORDER_CONFTEST = """
    from pathlib import Path
    from types import SimpleNamespace

    import httpx
    import pytest

    LOG = Path(__file__).with_name("recorder.log")
    STOP_STATUS = __STOP_STATUS__


    def _handler(request):
        with LOG.open("a") as fh:
            fh.write(f"{request.method} {request.url}\\n")
        if request.method == "DELETE":
            return httpx.Response(STOP_STATUS, content=b'{"events":[]}')
        return httpx.Response(200)


    @pytest.fixture(scope="session")
    def sail_app_server():
        return SimpleNamespace(host="127.0.0.1", port=3000)


    @pytest.fixture(scope="session")
    def sail_http_client():
        with httpx.Client(transport=httpx.MockTransport(_handler)) as client:
            yield client
"""

_FLAKY_MODULE = """
    from pathlib import Path

    import pytest

    ATTEMPTS = Path(__file__).with_name("attempts.log")


    __MARKER__
    def test_flaky():
        with ATTEMPTS.open("a") as fh:
            fh.write("x")
        attempt = len(ATTEMPTS.read_text())
        assert attempt >= __PASS_ON__, f"failed on attempt {attempt}"
"""


def install_recorder_stub(pytester: pytest.Pytester, *, stop_status: int = 200) -> None:
    """Write a conftest routing the recorder to an in-process stub."""
    source = textwrap.dedent(_RECORDER_CONFTEST).replace(
        "__STOP_STATUS__", str(stop_status)
    )
    pytester.makeconftest(source)


def recorder_calls(pytester: pytest.Pytester) -> list[str]:
    """Return the HTTP methods the stub recorder received, in order."""
    log = pytester.path / RECORDER_LOG
    if not log.exists():
        return []
    return [line.split(" ", 1)[0] for line in log.read_text().splitlines()]


def recorder_urls(pytester: pytest.Pytester) -> list[str]:
    """Return the URLs the stub recorder received, in order."""
    log = pytester.path / RECORDER_LOG
    if not log.exists():
        return []
    return [line.split(" ", 1)[1] for line in log.read_text().splitlines()]


def write_flaky_module(
    pytester: pytest.Pytester, *, marker: str = "@pytest.mark.js", pass_on: int = 3
) -> None:
    """Write a test failing until attempt *pass_on*."""
    source = (
        textwrap.dedent(_FLAKY_MODULE)
        .replace("__MARKER__", marker)
        .replace("__PASS_ON__", str(pass_on))
    )
    pytester.makepyfile(test_flaky=source)


def attempts_made(pytester: pytest.Pytester) -> int:
    """Return how many times the flaky test body ran."""
    log = pytester.path / ATTEMPTS_LOG
    return len(log.read_text()) if log.exists() else 0
