"""Pytest harness for browser-driven and controller tests of Sail.

The plugin cleans the database before each example, stubs the signed-in
administrator, runs the application under a recording-enabled server, drives
it with a shared headless browser and brackets every feature example with a
remote recording.
"""

from __future__ import annotations

from .assertions import CastType, PageProbe, PlaywrightPage, Setting, expect_setting, titleize
from .config import HarnessConfig
from .context import TestRunContext
from .database import CleaningStrategy, DatabaseCleaner
from .drivers import (
    CHROME,
    HEADLESS_CHROME,
    BrowserSession,
    DriverRegistry,
    DriverSpec,
    default_drivers,
)
from .errors import (
    LifecycleError,
    RecorderStopError,
    SailHarnessError,
    ServerStartError,
    UnknownDriverError,
    UnknownServerError,
)
from .identity import StubUser, WardenStub, install_current_user, install_request_identity
from .record import RecorderState, RecordingArtifact, RemoteRecorder
from .retry import RetryConfig, RetryOutcome, run_with_retry
from .server import (
    SAIL_SERVER_ENVIRONMENT,
    AppServer,
    ServerRegistry,
    default_servers,
    spawn_sail_server,
    spawn_server,
)

__all__ = [
    "CHROME",
    "HEADLESS_CHROME",
    "SAIL_SERVER_ENVIRONMENT",
    "AppServer",
    "BrowserSession",
    "CastType",
    "CleaningStrategy",
    "DatabaseCleaner",
    "DriverRegistry",
    "DriverSpec",
    "HarnessConfig",
    "LifecycleError",
    "PageProbe",
    "PlaywrightPage",
    "RecorderState",
    "RecorderStopError",
    "RecordingArtifact",
    "RemoteRecorder",
    "RetryConfig",
    "RetryOutcome",
    "SailHarnessError",
    "ServerRegistry",
    "ServerStartError",
    "Setting",
    "StubUser",
    "TestRunContext",
    "UnknownDriverError",
    "UnknownServerError",
    "WardenStub",
    "default_drivers",
    "default_servers",
    "expect_setting",
    "install_current_user",
    "install_request_identity",
    "run_with_retry",
    "spawn_sail_server",
    "spawn_server",
    "titleize",
]
