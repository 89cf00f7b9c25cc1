"""Authentication stubs for controller and feature examples.

Controller examples read the signed-in user from the request environment,
feature examples from the application's ``current_user`` accessor. Both
injection points hand out the same :class:`StubUser`, so a change to the
stubbed interface only needs to be made here.
"""

from __future__ import annotations

import dataclasses as dc
import logging
import typing as t

if t.TYPE_CHECKING:  # pragma: no cover - used only for typing
    import pytest

logger = logging.getLogger(__name__)

WARDEN_ENV_KEY: t.Final[str] = "warden"


@dc.dataclass(frozen=True, slots=True)
class StubUser:
    """Fixed administrator identity used instead of real authentication."""

    is_admin: bool = True
    id: int = 1

    def admin(self) -> bool:
        """Mirror the application's ``admin?`` predicate."""
        return self.is_admin


class WardenStub:
    """Request-environment object whose ``user`` is always the stub user."""

    @property
    def user(self) -> StubUser:
        """Return a fresh :class:`StubUser`."""
        return StubUser()

    def authenticate(self, *_args: object, **_kwargs: object) -> StubUser:
        """Accept any authentication attempt."""
        return self.user


def install_request_identity(environ: t.MutableMapping[str, t.Any]) -> WardenStub:
    """Place a :class:`WardenStub` into a request environment."""
    warden = WardenStub()
    environ[WARDEN_ENV_KEY] = warden
    return warden


def install_current_user(monkeypatch: pytest.MonkeyPatch, target: str) -> StubUser:
    """Replace the accessor at dotted path *target* with the stub user.

    *target* uses the ``package.module.Class.attribute`` form accepted by
    :meth:`pytest.MonkeyPatch.setattr`. The replacement works both as a plain
    function and as a method.
    """
    user = StubUser()

    def current_user(*_args: object, **_kwargs: object) -> StubUser:
        return user

    monkeypatch.setattr(target, current_user)
    logger.debug("Stubbed current user at %s", target)
    return user
