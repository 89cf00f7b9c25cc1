"""Per-example database cleaning for SQLite-backed applications."""

from __future__ import annotations

import contextlib
import enum
import logging
import sqlite3
import typing as t
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_KEEP_TABLES: t.Final[tuple[str, ...]] = (
    "schema_migrations",
    "ar_internal_metadata",
)


class CleaningStrategy(enum.StrEnum):
    """How tables are emptied between examples."""

    TRUNCATION = "truncation"
    DELETION = "deletion"


def _quote(identifier: str) -> str:
    """Quote *identifier* for use in an SQLite statement."""
    escaped = identifier.replace('"', '""')
    return f'"{escaped}"'


class DatabaseCleaner:
    """Empty every application table before an example runs.

    Parameters
    ----------
    path : Path | str
        SQLite database file used by the application under test.
    strategy : CleaningStrategy | str
        ``truncation`` deletes all rows and resets ``AUTOINCREMENT`` counters;
        ``deletion`` only deletes rows.
    keep_tables : Iterable[str]
        Tables that are never touched, such as the migration ledger.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        strategy: CleaningStrategy | str = CleaningStrategy.TRUNCATION,
        keep_tables: t.Iterable[str] = DEFAULT_KEEP_TABLES,
    ) -> None:
        self._path = Path(path)
        self._strategy = CleaningStrategy(strategy)
        self._keep = frozenset(keep_tables)

    @property
    def path(self) -> Path:
        """Return the database file path."""
        return self._path

    @property
    def strategy(self) -> CleaningStrategy:
        """Return the configured strategy."""
        return self._strategy

    def tables(self) -> list[str]:
        """Return the user tables that :meth:`clean` would empty."""
        if not self._path.exists():
            return []
        with contextlib.closing(sqlite3.connect(self._path)) as conn:
            return self._list_tables(conn)

    def _list_tables(self, conn: sqlite3.Connection) -> list[str]:
        rows = conn.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        ).fetchall()
        return [name for (name,) in rows if name not in self._keep]

    def clean(self) -> list[str]:
        """Empty all tables and return their names.

        A missing database file is treated as already clean.
        """
        if not self._path.exists():
            logger.debug("Database %s does not exist; nothing to clean", self._path)
            return []

        with contextlib.closing(sqlite3.connect(self._path)) as conn:
            tables = self._list_tables(conn)
            with conn:
                for table in tables:
                    conn.execute(f"DELETE FROM {_quote(table)}")  # noqa: S608
                if self._strategy is CleaningStrategy.TRUNCATION and tables:
                    self._reset_sequences(conn, tables)

        logger.debug("Cleaned %d tables in %s (%s)", len(tables), self._path, self._strategy)
        return tables

    @staticmethod
    def _reset_sequences(conn: sqlite3.Connection, tables: list[str]) -> None:
        has_sequences = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'sqlite_sequence'"
        ).fetchone()
        if has_sequences is None:
            return
        placeholders = ", ".join("?" for _ in tables)
        conn.execute(
            f"DELETE FROM sqlite_sequence WHERE name IN ({placeholders})",  # noqa: S608
            tables,
        )
