"""Abstractions for pluggable rate sources."""

from __future__ import annotations

from typing import Protocol

from fx_bundesbank.ingestion.models import RateEntry


class RateSource(Protocol):
    """Contract for fetching rate series from an external provider.

    ``fetch`` returns the parsed ``(date, rate)`` entries for one currency
    quoted against the base currency. Transport failures raise
    :class:`~fx_bundesbank.exceptions.RateSourceError`; malformed rows are
    skipped rather than raised.
    """

    def fetch(self, currency: str) -> list[RateEntry]:
        ...  # pragma: no cover - protocol definition

    def fetch_series_keys(self) -> str:
        ...  # pragma: no cover - protocol definition


__all__ = ["RateSource"]
