"""SQLite backend strategy implementation."""

from __future__ import annotations

from pathlib import Path

from fx_bundesbank.db import DEFAULT_SQLITE_DB_PATH
from fx_bundesbank.db.relational_backend import RelationalBackend


def sqlite_url(db_path: str | Path) -> str:
    """Build an SQLAlchemy URL for an on-disk SQLite file."""

    return f"sqlite:///{Path(db_path).expanduser().resolve().as_posix()}"


class SQLiteBackend(RelationalBackend):
    """Relational backend bound to a local SQLite file.

    The schema is created on construction so the store is immediately usable.
    """

    def __init__(self, db_path: str | Path = DEFAULT_SQLITE_DB_PATH) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(sqlite_url(self.db_path))
        self.ensure_schema()


__all__ = ["SQLiteBackend", "sqlite_url"]
