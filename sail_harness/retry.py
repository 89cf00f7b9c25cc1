"""Retry helpers for flaky browser-driven examples."""

from __future__ import annotations

import dataclasses as dc
import logging
import time
import typing as t

_logger = logging.getLogger(__name__)

T = t.TypeVar("T")


@dc.dataclass(frozen=True, slots=True)
class RetryConfig:
    """
    Configuration for retry loops.

    Attributes
    ----------
    max_attempts : int
        Maximum number of attempts, including the first (must be >= 1).
    retry_delay : float
        Delay in seconds between attempts (must be >= 0).

    Raises
    ------
    ValueError
        If max_attempts < 1 or retry_delay < 0.
    """

    max_attempts: int
    retry_delay: float = 0.0

    def __post_init__(self) -> None:
        """Validate retry configuration values."""
        if isinstance(self.max_attempts, bool) or self.max_attempts < 1:
            msg = "max_attempts must be >= 1"
            raise ValueError(msg)
        if self.retry_delay < 0:
            msg = "retry_delay must be >= 0"
            raise ValueError(msg)


DEFAULT_UI_RETRY = RetryConfig(max_attempts=3, retry_delay=0.0)


@dc.dataclass(frozen=True, slots=True)
class RetryOutcome(t.Generic[T]):
    """Result of a successful :func:`run_with_retry` call."""

    result: T
    attempts: int


def _log_retry_attempt(
    logger: logging.Logger,
    attempt: int,
    config: RetryConfig,
    exc: BaseException,
) -> None:
    """Log a discarded failure before the next attempt."""
    logger.debug(
        "Attempt %d of %d failed with %s: %s. Retrying in %.1fs...",
        attempt + 1,
        config.max_attempts,
        type(exc).__name__,
        exc,
        config.retry_delay,
    )


def run_with_retry(
    fn: t.Callable[[], T],
    *,
    config: RetryConfig = DEFAULT_UI_RETRY,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    logger: logging.Logger | None = None,
    before_retry: t.Callable[[BaseException], None] | None = None,
) -> RetryOutcome[T]:
    """
    Call *fn* until it succeeds or the attempts run out.

    Only the last failure is surfaced; earlier ones are logged at debug level
    and discarded. Exceptions that are not instances of *retry_on* propagate
    immediately.

    Parameters
    ----------
    fn : Callable[[], T]
        The callable to run.
    config : RetryConfig, optional
        Attempt limit and delay. Defaults to DEFAULT_UI_RETRY (3 attempts).
    retry_on : tuple[type[BaseException], ...], optional
        Exception types that trigger another attempt.
    logger : logging.Logger | None, optional
        Logger for discarded failures. Defaults to the module logger.
    before_retry : Callable[[BaseException], None] | None, optional
        Called with the discarded failure before each new attempt. Errors it
        raises end the loop and are not retried.

    Returns
    -------
    RetryOutcome[T]
        The value returned by *fn* and the number of attempts it took.
    """
    log = logger or _logger
    for attempt in range(config.max_attempts):
        try:
            result = fn()
        except retry_on as exc:
            if attempt == config.max_attempts - 1:
                raise
            _log_retry_attempt(log, attempt, config, exc)
            if config.retry_delay:
                time.sleep(config.retry_delay)
            if before_retry is not None:
                before_retry(exc)
        else:
            return RetryOutcome(result=result, attempts=attempt + 1)

    msg = "run_with_retry exhausted its attempts without a result"
    raise AssertionError(msg)  # pragma: no cover - loop always returns or raises
