"""Storage defaults shared by the database backends."""

from __future__ import annotations

from pathlib import Path
from typing import Final

__all__ = ["DEFAULT_BATCH_SIZE", "DEFAULT_SQLITE_DB_PATH"]

# Bundled next to this module, independent of the working directory.
DEFAULT_SQLITE_DB_PATH: Final[Path] = Path(__file__).resolve().with_name("exchange_rates.db")
DEFAULT_BATCH_SIZE: Final[int] = 1000
