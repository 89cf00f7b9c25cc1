"""Steps for testing the pytest plugin."""

from __future__ import annotations

import shutil
import subprocess
import sys
import tempfile
import typing as t
from pathlib import Path

from behave import given, then, when  # type: ignore[attr-defined]


class BehaveContext(t.Protocol):
    """Behave step context for plugin tests."""

    test_file: Path
    tmpdir: Path
    result: subprocess.CompletedProcess[str]


@given("a temporary test file with sail examples")
def step_create_test_file(context: BehaveContext) -> None:
    """Write a pytest file exercising both identity injection points."""
    test_code = """
import pytest

@pytest.mark.controller
def test_controller(sail_request_env):
    assert sail_request_env["warden"].user.is_admin

@pytest.mark.feature
@pytest.mark.js
def test_feature(sail_current_user, sail_config):
    assert sail_current_user.admin()
    assert sail_config.recording is False
"""
    tmpdir = Path(tempfile.mkdtemp())
    context.test_file = tmpdir / "test_example.py"
    context.tmpdir = tmpdir
    context.test_file.write_text(test_code)


@when("I run pytest on the file")
def step_run_pytest(context: BehaveContext) -> None:
    """Execute pytest on the generated file."""
    result = subprocess.run(  # noqa: S603
        [
            sys.executable,
            "-m",
            "pytest",
            str(context.test_file),
            "--no-sail-recording",
            "--rootdir",
            str(context.tmpdir),
        ],
        capture_output=True,
        text=True,
        cwd=context.tmpdir,
    )
    context.result = result
    shutil.rmtree(context.tmpdir)


@then("the run should pass")
def step_check_pass(context: BehaveContext) -> None:
    """Assert that pytest exited successfully."""
    assert context.result.returncode == 0, context.result.stdout  # noqa: S101
