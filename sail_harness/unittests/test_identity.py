"""Unit tests for the authentication stubs."""

from __future__ import annotations

import sys
import types

import pytest

from sail_harness.identity import (
    WARDEN_ENV_KEY,
    StubUser,
    WardenStub,
    install_current_user,
    install_request_identity,
)


def test_stub_user_is_admin_with_id_one() -> None:
    """The stub identity is a fixed administrator."""
    user = StubUser()
    assert user.is_admin is True
    assert user.admin() is True
    assert user.id == 1


def test_warden_hands_out_stub_user() -> None:
    """The request-environment stub returns the stub user."""
    warden = WardenStub()
    assert warden.user == StubUser()
    assert warden.authenticate(scope="admin") == StubUser()


def test_install_request_identity() -> None:
    """The warden stub is placed under the ``warden`` key."""
    environ: dict[str, object] = {"PATH_INFO": "/sail"}

    warden = install_request_identity(environ)

    assert environ[WARDEN_ENV_KEY] is warden
    assert environ["PATH_INFO"] == "/sail"


@pytest.fixture
def app_module(monkeypatch: pytest.MonkeyPatch) -> types.ModuleType:
    """Register a throwaway module with an authenticating controller."""
    module = types.ModuleType("fake_sail_app")

    class ApplicationController:
        def current_user(self) -> object:
            raise PermissionError("not signed in")

    module.ApplicationController = ApplicationController  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "fake_sail_app", module)
    return module


def test_install_current_user_replaces_method(
    monkeypatch: pytest.MonkeyPatch, app_module: types.ModuleType
) -> None:
    """Instances see the stub user instead of authenticating."""
    install_current_user(monkeypatch, "fake_sail_app.ApplicationController.current_user")

    controller = app_module.ApplicationController()
    assert controller.current_user() == StubUser()


def test_install_current_user_is_undone(app_module: types.ModuleType) -> None:
    """The original accessor comes back when the monkeypatch is undone."""
    patcher = pytest.MonkeyPatch()
    install_current_user(patcher, "fake_sail_app.ApplicationController.current_user")
    patcher.undo()

    with pytest.raises(PermissionError):
        app_module.ApplicationController().current_user()
