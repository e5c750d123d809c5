"""Backend strategy interface for the rate store and currency registry table."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Iterator, Sequence, TypeVar

from fx_bundesbank.db import DEFAULT_BATCH_SIZE
from fx_bundesbank.ingestion.models import RatePoint

T = TypeVar("T")


@dataclass(slots=True)
class PersistenceResult:
    """Represents how many rows a bulk insert wrote and in how many chunks."""

    inserted: int = 0
    batches: int = 0

    def __add__(self, other: "PersistenceResult") -> "PersistenceResult":
        return PersistenceResult(
            inserted=self.inserted + other.inserted,
            batches=self.batches + other.batches,
        )


def chunked(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of ``items`` holding at most ``size`` elements."""

    if size <= 0:
        raise ValueError("batch size must be positive")
    for offset in range(0, len(items), size):
        yield items[offset : offset + size]


class BackendStrategy(ABC):
    """Common interface implemented by every database backend.

    Rate rows are append-only and unique per ``(currency, rate_date)``;
    :meth:`save_all` never deduplicates, so callers must exclude dates that
    are already stored (see :meth:`fetch_dates`).
    """

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create required tables/collections and verify connectivity."""

    @abstractmethod
    def save_all(
        self, points: Sequence[RatePoint], *, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> PersistenceResult:
        """Insert ``points`` in chunks of ``batch_size`` as one unit of work."""

    @abstractmethod
    def find_by_currency(self, currency: str) -> list[RatePoint]:
        """Return every stored rate for ``currency``, newest date first."""

    @abstractmethod
    def find_by_currency_and_date(self, currency: str, rate_date: date) -> RatePoint | None:
        """Return the rate for ``currency`` on ``rate_date`` if stored."""

    @abstractmethod
    def fetch_dates(self, currency: str) -> set[date]:
        """Return the set of dates already stored for ``currency``."""

    @abstractmethod
    def distinct_currencies(self) -> list[str]:
        """Return the currencies that have at least one stored rate."""

    @abstractmethod
    def count_rates(self) -> int:
        """Return the total number of stored rate rows."""

    @abstractmethod
    def upsert_currencies(self, codes: Iterable[str]) -> int:
        """Insert currency codes that are not yet known; return how many were new."""

    @abstractmethod
    def fetch_currencies(self) -> list[str]:
        """Return every stored currency code."""

    @abstractmethod
    def currency_exists(self, code: str) -> bool:
        """Return True when ``code`` is present in the currency table."""

    def count_currencies(self) -> int:
        return len(self.fetch_currencies())

    def is_empty(self) -> bool:
        """Return True when no rate rows are stored yet."""

        return self.count_rates() == 0

    def close(self) -> None:  # pragma: no cover - optional cleanup hook
        """Backends may override to release connections/resources."""

    def __enter__(self) -> "BackendStrategy":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["BackendStrategy", "PersistenceResult", "chunked"]
