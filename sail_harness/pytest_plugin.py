"""Pytest plugin wiring the Sail harness around every example."""

from __future__ import annotations

import functools
import inspect
import logging
import random
import typing as t

import httpx
import pytest

from .config import DEFAULT_CI_BROWSERS_PATH, DEFAULT_MAX_WAIT_TIME, HarnessConfig
from .context import TestRunContext
from .database import DEFAULT_KEEP_TABLES, CleaningStrategy
from .drivers import HEADLESS_CHROME
from .errors import RecorderStopError
from .identity import StubUser, install_current_user, install_request_identity
from .record import RecorderState
from .retry import run_with_retry

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    from playwright.sync_api import Page

    from .drivers import BrowserSession
    from .record import RecordingArtifact, RemoteRecorder
    from .server import AppServer

logger = logging.getLogger(__name__)

FEATURE: t.Final[str] = "feature"
CONTROLLER: t.Final[str] = "controller"

_KIND_DIRECTORIES: t.Final[dict[str, str]] = {
    "features": FEATURE,
    "controllers": CONTROLLER,
}

_CONFIG_KEY = pytest.StashKey[HarnessConfig]()
_ATTEMPTS_KEY = pytest.StashKey[int]()
_ARTIFACT_KEY = pytest.StashKey["RecordingArtifact"]()
_RESET_KEY = pytest.StashKey[t.Callable[[BaseException], None]]()


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line and ini options for the plugin."""
    group = parser.getgroup("sail")
    group.addoption(
        "--sail-database",
        dest="sail_database",
        default=None,
        help="SQLite database emptied before every example. Overrides the ini.",
    )
    group.addoption(
        "--sail-server-command",
        dest="sail_server_command",
        default=None,
        help=(
            "Command starting the application under test; {host} and {port} "
            "are substituted. Overrides the ini setting."
        ),
    )
    group.addoption(
        "--sail-driver",
        dest="sail_driver",
        default=None,
        help="Registered browser driver for feature examples.",
    )
    group.addoption(
        "--sail-recording",
        action="store_true",
        dest="sail_recording",
        default=None,
        help="Record every feature example through the remote recorder.",
    )
    group.addoption(
        "--no-sail-recording",
        action="store_false",
        dest="sail_recording",
        default=None,
        help="Do not call the remote recorder around feature examples.",
    )
    group.addoption(
        "--sail-seed",
        dest="sail_seed",
        type=int,
        default=None,
        help="Seed for sail_random_order. A random seed is used when omitted.",
    )

    parser.addini("sail_database", "SQLite database emptied before every example.")
    parser.addini(
        "sail_database_strategy",
        "Cleaning strategy: truncation or deletion.",
        default=str(CleaningStrategy.TRUNCATION),
    )
    parser.addini(
        "sail_keep_tables",
        "Tables never emptied by the database cleaner.",
        type="linelist",
        default=list(DEFAULT_KEEP_TABLES),
    )
    parser.addini("sail_server", "Registered server launcher.", default="sail")
    parser.addini("sail_server_command", "Command starting the application.")
    parser.addini("sail_server_host", "Host the server binds to.", default="127.0.0.1")
    parser.addini("sail_server_port", "Server port; 0 picks a free one.", default="0")
    parser.addini(
        "sail_server_startup_timeout",
        "Seconds to wait for the server to accept connections.",
        default="60",
    )
    parser.addini("sail_driver", "Registered browser driver.", default=HEADLESS_CHROME)
    parser.addini(
        "sail_max_wait_time",
        "Default wait for UI actions and assertions, in seconds.",
        default=str(DEFAULT_MAX_WAIT_TIME),
    )
    parser.addini(
        "sail_retry_attempts",
        "Total attempts for examples marked js.",
        default="3",
    )
    parser.addini("sail_retry_delay", "Seconds between retry attempts.", default="0")
    parser.addini(
        "sail_recording",
        "Record every feature example through the remote recorder.",
        type="bool",
        default=True,
    )
    parser.addini(
        "sail_recording_dir",
        "Directory receiving recording artifacts; unset discards them.",
    )
    parser.addini(
        "sail_current_user_target",
        "Dotted path of the current-user accessor stubbed in feature examples.",
    )
    parser.addini(
        "sail_infer_kind_from_location",
        "Treat tests under features/ and controllers/ as that kind of example.",
        type="bool",
        default=True,
    )
    parser.addini(
        "sail_random_order",
        "Shuffle collected examples using --sail-seed.",
        type="bool",
        default=False,
    )
    parser.addini(
        "sail_ci_browsers_path",
        "Browser install directory used when ON_CI is set.",
        default=DEFAULT_CI_BROWSERS_PATH,
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register plugin markers and resolve the harness configuration."""
    config.addinivalue_line(
        "markers", "feature: browser-driven example recorded and run as admin."
    )
    config.addinivalue_line(
        "markers", "controller: controller example with a stubbed request identity."
    )
    config.addinivalue_line(
        "markers", "js: JavaScript UI example, retried on failure."
    )
    config.addinivalue_line(
        "markers", "retry(attempts): total attempts before reporting a failure."
    )
    try:
        config.stash[_CONFIG_KEY] = HarnessConfig.from_pytest(config)
    except ValueError as exc:
        msg = f"Invalid sail configuration: {exc}"
        raise pytest.UsageError(msg) from exc


def pytest_report_header(config: pytest.Config) -> str | None:
    """Report the shuffle seed so a failing order can be replayed."""
    harness = config.stash.get(_CONFIG_KEY, None)
    if harness is None or not harness.random_order:
        return None
    return f"sail: random order, seed {harness.seed} (replay with --sail-seed)"


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Shuffle examples when random ordering is enabled."""
    harness = config.stash.get(_CONFIG_KEY, None)
    if harness is None or not harness.random_order:
        return
    random.Random(harness.seed).shuffle(items)  # noqa: S311


def example_kind(item: pytest.Item, *, infer_from_location: bool = True) -> str | None:
    """Return ``"feature"``, ``"controller"`` or ``None`` for *item*.

    Markers win; otherwise the first ``features`` or ``controllers``
    directory between the rootdir and the test file decides.
    """
    for kind in (FEATURE, CONTROLLER):
        if item.get_closest_marker(kind) is not None:
            return kind
    if not infer_from_location:
        return None

    try:
        relative = item.path.relative_to(item.config.rootpath)
    except ValueError:
        relative = item.path
    for part in relative.parts[:-1]:
        kind = _KIND_DIRECTORIES.get(part)
        if kind is not None:
            return kind
    return None


def _retry_attempts(item: pytest.Item, harness: HarnessConfig) -> int | None:
    """Return the attempt budget for *item*, or ``None`` to run it once."""
    marker = item.get_closest_marker("retry")
    if marker is not None:
        if marker.args:
            return int(marker.args[0])
        return int(marker.kwargs.get("attempts", harness.retry_attempts))
    if item.get_closest_marker("js") is not None:
        return harness.retry_attempts
    return None


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run retryable examples through :func:`run_with_retry`.

    Before every attempt after the first, the per-example reset runs again:
    the database is cleaned, the identity re-stubbed and, for recorded
    feature examples, the failed attempt's recording is stopped and a new
    one started. Other fixture values are reused. Only the last failure is
    reported.
    """
    harness = pyfuncitem.config.stash[_CONFIG_KEY]
    attempts = _retry_attempts(pyfuncitem, harness)
    testfunction = pyfuncitem.obj
    if attempts is None or inspect.iscoroutinefunction(testfunction):
        return None

    funcargs = pyfuncitem.funcargs
    testargs = {arg: funcargs[arg] for arg in pyfuncitem._fixtureinfo.argnames}
    call = functools.partial(testfunction, **testargs)
    executed = 0

    def attempt() -> object:
        nonlocal executed
        executed += 1
        return call()

    try:
        run_with_retry(
            attempt,
            config=harness.retry_config(attempts),
            retry_on=(Exception, pytest.fail.Exception),
            logger=logger,
            before_retry=pyfuncitem.stash.get(_RESET_KEY, None),
        )
    finally:
        pyfuncitem.stash[_ATTEMPTS_KEY] = executed
    return True


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(
    item: pytest.Item, call: pytest.CallInfo[t.Any]
) -> t.Generator[None, None, None]:
    """Attach per-phase reports to the item and add harness sections."""
    del call
    outcome = yield
    rep = outcome.get_result()
    setattr(item, f"rep_{rep.when}", rep)
    if rep.when == "call":
        executed = item.stash.get(_ATTEMPTS_KEY, 0)
        if executed > 1:
            rep.sections.append(("sail retry", f"{rep.outcome} after {executed} attempts"))
    elif rep.when == "teardown":
        artifact = item.stash.get(_ARTIFACT_KEY, None)
        if artifact is not None:
            rep.sections.append(
                ("sail recording", f"{artifact.name}: {len(artifact.body)} bytes")
            )


def _call_stage_failed(item: pytest.Item) -> bool:
    """Return ``True`` when the test body has already failed."""
    rep_call = getattr(item, "rep_call", None)
    return bool(rep_call and rep_call.failed)


@pytest.fixture(scope="session")
def sail_config(pytestconfig: pytest.Config) -> HarnessConfig:
    """Return the resolved harness configuration."""
    return pytestconfig.stash[_CONFIG_KEY]


@pytest.fixture(scope="session")
def sail_context(sail_config: HarnessConfig) -> t.Generator[TestRunContext, None, None]:
    """Provide the run context and tear its resources down at session end."""
    context = TestRunContext(sail_config)
    try:
        yield context
    finally:
        context.close()


@pytest.fixture(scope="session")
def sail_app_server(sail_context: TestRunContext) -> AppServer:
    """Return the booted application server."""
    return sail_context.app_server()


@pytest.fixture(scope="session")
def sail_http_client() -> t.Generator[httpx.Client, None, None]:
    """Provide the HTTP client used to talk to the recorder."""
    with httpx.Client() as client:
        yield client


@pytest.fixture(scope="session")
def sail_recorder(
    sail_context: TestRunContext,
    sail_http_client: httpx.Client,
    sail_app_server: AppServer,
) -> RemoteRecorder:
    """Return the single recorder of the application server."""
    return sail_context.recorder(sail_http_client, sail_app_server)


@pytest.fixture(scope="session")
def sail_browser(sail_context: TestRunContext) -> BrowserSession:
    """Return the session-wide browser for the configured driver."""
    return sail_context.browser()


@pytest.fixture
def sail_page(
    sail_browser: BrowserSession, sail_app_server: AppServer
) -> t.Generator[Page, None, None]:
    """Provide a page whose relative URLs resolve against the live server."""
    page = sail_browser.new_page(base_url=sail_app_server.base_url)
    try:
        yield page
    finally:
        page.context.close()


@pytest.fixture
def sail_request_env() -> dict[str, t.Any]:
    """Return the request environment handed to controller examples."""
    return {}


@pytest.fixture
def sail_current_user() -> StubUser:
    """Return the identity every stubbed injection point hands out."""
    return StubUser()


@pytest.fixture(autouse=True)
def _sail_example(
    request: pytest.FixtureRequest,
    sail_config: HarnessConfig,
    sail_context: TestRunContext,
) -> t.Generator[None, None, None]:
    """Reset state before each attempt of an example and record feature examples."""
    item = request.node
    kind = example_kind(item, infer_from_location=sail_config.infer_kind_from_location)
    _reset_example(request, sail_config, sail_context, kind)

    recorder: RemoteRecorder | None = None
    if kind == FEATURE and sail_config.recording:
        recorder = request.getfixturevalue("sail_recorder")
        recorder.start(item.nodeid)

    def before_retry(attempt_error: BaseException) -> None:
        if recorder is not None:
            _stop_failed_attempt(item, recorder, sail_config, attempt_error)
        _reset_example(request, sail_config, sail_context, kind)
        if recorder is not None:
            recorder.start(item.nodeid)

    item.stash[_RESET_KEY] = before_retry
    yield
    if recorder is not None and recorder.state is RecorderState.RECORDING:
        _finish_recording(item, recorder, sail_config)


def _reset_example(
    request: pytest.FixtureRequest,
    sail_config: HarnessConfig,
    sail_context: TestRunContext,
    kind: str | None,
) -> None:
    """Clean the database and stub the identity for one attempt."""
    cleaner = sail_context.cleaner()
    if cleaner is not None:
        cleaner.clean()

    if kind == CONTROLLER:
        install_request_identity(request.getfixturevalue("sail_request_env"))
    elif kind == FEATURE:
        _stub_feature_identity(request, sail_config)


def _stub_feature_identity(
    request: pytest.FixtureRequest, sail_config: HarnessConfig
) -> None:
    """Replace the application's current-user accessor, when configured."""
    target = sail_config.current_user_target
    if target is None:
        logger.debug("sail_current_user_target unset; feature identity not stubbed")
        return
    install_current_user(request.getfixturevalue("monkeypatch"), target)


def _stop_failed_attempt(
    item: pytest.Item,
    recorder: RemoteRecorder,
    sail_config: HarnessConfig,
    attempt_error: BaseException,
) -> None:
    """Close the recording of a failed attempt before the example is retried."""
    try:
        artifact = recorder.stop()
    except RecorderStopError as exc:
        logger.exception(
            "Stopping the recording of %s failed before a retry", item.nodeid
        )
        exc.example_error = attempt_error
        raise
    _keep_artifact(item, artifact, sail_config)


def _finish_recording(
    item: pytest.Item, recorder: RemoteRecorder, sail_config: HarnessConfig
) -> None:
    """Stop the recording, keeping stop failures apart from body failures."""
    try:
        artifact = recorder.stop()
    except RecorderStopError:
        if _call_stage_failed(item):
            logger.exception(
                "Stopping the recording of %s failed after the example failed",
                item.nodeid,
            )
        else:
            logger.exception("Stopping the recording of %s failed", item.nodeid)
        raise
    _keep_artifact(item, artifact, sail_config)


def _keep_artifact(
    item: pytest.Item, artifact: RecordingArtifact, sail_config: HarnessConfig
) -> None:
    item.stash[_ARTIFACT_KEY] = artifact
    if sail_config.recording_dir is not None:
        path = artifact.save(sail_config.recording_dir)
        logger.info("Saved recording of %s to %s", item.nodeid, path)
