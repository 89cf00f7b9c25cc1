"""Harness configuration resolved from pytest options and the environment."""

from __future__ import annotations

import dataclasses as dc
import math
import os
import random
import typing as t
from pathlib import Path

from .database import DEFAULT_KEEP_TABLES, CleaningStrategy
from .drivers import HEADLESS_CHROME
from .retry import RetryConfig

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    import pytest

ON_CI_ENV: t.Final[str] = "ON_CI"
DEFAULT_MAX_WAIT_TIME: t.Final[float] = 9999.0
DEFAULT_CI_BROWSERS_PATH: t.Final[str] = "~/bin/playwright"


@dc.dataclass(frozen=True, slots=True)
class HarnessConfig:
    """Settings for one test run.

    ``max_wait_time`` is deliberately huge: UI waits are expected to end when
    the page settles, not on a timer.
    """

    database: Path | None = None
    database_strategy: CleaningStrategy = CleaningStrategy.TRUNCATION
    keep_tables: tuple[str, ...] = DEFAULT_KEEP_TABLES
    server: str = "sail"
    server_command: str | None = None
    server_host: str = "127.0.0.1"
    server_port: int = 0
    server_startup_timeout: float = 60.0
    driver: str = HEADLESS_CHROME
    max_wait_time: float = DEFAULT_MAX_WAIT_TIME
    retry_attempts: int = 3
    retry_delay: float = 0.0
    recording: bool = True
    recording_dir: Path | None = None
    current_user_target: str | None = None
    infer_kind_from_location: bool = True
    random_order: bool = False
    seed: int = 0
    on_ci: bool = False
    browsers_path: Path = Path(DEFAULT_CI_BROWSERS_PATH)

    def __post_init__(self) -> None:
        """Validate numeric settings."""
        if not (self.max_wait_time > 0 and not math.isnan(self.max_wait_time)):
            msg = "sail_max_wait_time must be > 0"
            raise ValueError(msg)
        if not 0 <= self.server_port <= 65535:
            msg = f"sail_server_port must be between 0 and 65535, got {self.server_port}"
            raise ValueError(msg)
        if not self.server_startup_timeout > 0:
            msg = "sail_server_startup_timeout must be > 0"
            raise ValueError(msg)
        # Delegates the attempts/delay checks.
        self.retry_config()

    def retry_config(self, attempts: int | None = None) -> RetryConfig:
        """Return the retry policy, optionally overriding the attempt count."""
        return RetryConfig(
            max_attempts=self.retry_attempts if attempts is None else attempts,
            retry_delay=self.retry_delay,
        )

    @property
    def effective_browsers_path(self) -> Path | None:
        """Return the browser install directory to export, on CI only."""
        return self.browsers_path.expanduser() if self.on_ci else None

    @classmethod
    def from_pytest(
        cls,
        config: pytest.Config,
        environ: t.Mapping[str, str] | None = None,
    ) -> HarnessConfig:
        """Build the configuration with priority CLI > ini > default."""
        env = os.environ if environ is None else environ

        def option(name: str) -> t.Any:  # noqa: ANN401
            cli_value = config.getoption(name, default=None)
            if cli_value is not None:
                return cli_value
            return config.getini(name)

        database = option("sail_database")
        recording_dir = config.getini("sail_recording_dir")
        seed = config.getoption("sail_seed", default=None)
        return cls(
            database=Path(database) if database else None,
            database_strategy=CleaningStrategy(config.getini("sail_database_strategy")),
            keep_tables=tuple(config.getini("sail_keep_tables")),
            server=config.getini("sail_server"),
            server_command=option("sail_server_command") or None,
            server_host=config.getini("sail_server_host"),
            server_port=int(config.getini("sail_server_port")),
            server_startup_timeout=float(config.getini("sail_server_startup_timeout")),
            driver=option("sail_driver"),
            max_wait_time=float(config.getini("sail_max_wait_time")),
            retry_attempts=int(config.getini("sail_retry_attempts")),
            retry_delay=float(config.getini("sail_retry_delay")),
            recording=bool(option("sail_recording")),
            recording_dir=Path(recording_dir) if recording_dir else None,
            current_user_target=config.getini("sail_current_user_target") or None,
            infer_kind_from_location=bool(
                config.getini("sail_infer_kind_from_location")
            ),
            random_order=bool(config.getini("sail_random_order")),
            seed=int(seed) if seed is not None else random.randrange(2**32),  # noqa: S311
            on_ci=bool(env.get(ON_CI_ENV, "").strip()),
            browsers_path=Path(config.getini("sail_ci_browsers_path")),
        )
