"""Exception hierarchy and error kinds for fx_bundesbank."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Machine-readable error categories surfaced to callers."""

    FORMAT_ERROR = "FORMAT_ERROR"
    INVALID_CURRENCY_FORMAT = "INVALID_CURRENCY_FORMAT"
    FUTURE_DATE = "FUTURE_DATE"
    INVALID_CURRENCY = "INVALID_CURRENCY"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    RATE_NOT_FOUND = "RATE_NOT_FOUND"
    NO_RATES_FOUND = "NO_RATES_FOUND"
    SYNC_FETCH_FAILURE = "SYNC_FETCH_FAILURE"
    SYNC_PERSIST_FAILURE = "SYNC_PERSIST_FAILURE"


class FxBundesbankError(Exception):
    """Base exception for all fx_bundesbank errors.

    ``context`` carries structured metadata (currency, date, url, ...) that
    can be logged or serialised without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ExchangeRateError(FxBundesbankError):
    """A query or conversion request was rejected.

    The caller has to change its input; retrying the same request fails again.
    """

    def __init__(
        self, kind: ErrorKind, message: str, context: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, context)
        self.kind = kind

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class InvalidFormatError(ExchangeRateError, ValueError):
    """Input is malformed (missing date/amount, currency not ``[A-Z]{3}``)."""


class RateSourceError(FxBundesbankError):
    """The rate provider could not be reached or answered with an error."""


class SyncError(FxBundesbankError):
    """A single currency pipeline failed during synchronisation.

    Never raised to query callers; recorded on the sync report instead.
    """

    def __init__(
        self, kind: ErrorKind, message: str, context: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message, context)
        self.kind = kind


__all__ = [
    "ErrorKind",
    "ExchangeRateError",
    "FxBundesbankError",
    "InvalidFormatError",
    "RateSourceError",
    "SyncError",
]
