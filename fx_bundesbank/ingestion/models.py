"""Data models shared across ingestion, storage and query modules."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from fx_bundesbank.utils.rounding import quantize_rate


@dataclass(frozen=True, slots=True)
class RateEntry:
    """A single ``(date, rate)`` row parsed from a provider series."""

    rate_date: date
    rate: Decimal


@dataclass(frozen=True, slots=True)
class RatePoint:
    """Rate of ``currency`` per one unit of the base currency on ``rate_date``."""

    currency: str
    rate_date: date
    rate: Decimal

    def rounded(self) -> "RatePoint":
        """Return a copy whose rate is rounded to 4 decimals, half-up."""

        return replace(self, rate=quantize_rate(self.rate))


@dataclass(frozen=True, slots=True)
class ConversionResult:
    """Outcome of converting ``amount`` of ``currency`` into the base currency."""

    currency: str
    amount: Decimal
    rate: Decimal
    converted_amount: Decimal
    rate_date: date


__all__ = ["ConversionResult", "RateEntry", "RatePoint"]
