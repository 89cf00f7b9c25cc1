"""Behavioural tests for the retry wrapper using pytest-bdd."""

from __future__ import annotations

from pathlib import Path

from pytest_bdd import scenario

from tests.steps.retry import *  # noqa: F403

FEATURES_DIR = Path(__file__).resolve().parent.parent / "features"


@scenario(
    str(FEATURES_DIR / "retry.feature"),
    "an example failing twice passes on the third attempt",
)
def test_flaky_example_passes() -> None:
    """Two failures then a pass are reported as a pass."""


@scenario(
    str(FEATURES_DIR / "retry.feature"),
    "an example that keeps failing reports its last failure",
)
def test_exhausted_retries_report_last_failure() -> None:
    """Only the last failure surfaces."""


@scenario(
    str(FEATURES_DIR / "retry.feature"),
    "a single attempt runs the example once",
)
def test_single_attempt() -> None:
    """No retry happens with a budget of one."""
