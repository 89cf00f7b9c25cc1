"""Name-to-factory registries shared by drivers and server launchers."""

from __future__ import annotations

import logging
import typing as t

logger = logging.getLogger(__name__)

T = t.TypeVar("T")


class Registry(t.Generic[T]):
    """Ordered mapping of names to factories.

    Registering an existing name replaces the previous entry, so suites can
    override the built-in drivers and launchers from a ``conftest.py``.
    """

    def __init__(self, kind: str, error_cls: type[KeyError]) -> None:
        self._kind = kind
        self._error_cls = error_cls
        self._entries: dict[str, T] = {}

    def register(self, name: str, entry: T) -> T:
        """Register *entry* under *name* and return it."""
        if not name:
            msg = f"{self._kind} name must be a non-empty string"
            raise ValueError(msg)
        if name in self._entries:
            logger.debug("Replacing registered %s %r", self._kind, name)
        self._entries[name] = entry
        return entry

    def get(self, name: str) -> T:
        """Return the entry registered under *name*."""
        try:
            return self._entries[name]
        except KeyError:
            known = ", ".join(sorted(self._entries)) or "none"
            msg = f"No {self._kind} registered as {name!r} (known: {known})"
            raise self._error_cls(msg) from None

    def names(self) -> list[str]:
        """Return the registered names in registration order."""
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries
