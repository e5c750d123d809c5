"""Read-side service: validated rate lookups and conversions into the base currency."""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable

from fx_bundesbank.cache import KeyValueCache
from fx_bundesbank.db.base_backend import BackendStrategy
from fx_bundesbank.exceptions import ErrorKind, ExchangeRateError, InvalidFormatError
from fx_bundesbank.ingestion.models import ConversionResult, RatePoint
from fx_bundesbank.registry import CurrencyRegistry, is_valid_currency_format
from fx_bundesbank.utils.calendar import parse_date
from fx_bundesbank.utils.logger import get_logger
from fx_bundesbank.utils.rounding import quantize_amount

LOGGER = get_logger(__name__)

DateInput = date | str | None
AmountInput = Decimal | int | float | str | None


class RateQueryService:
    """Answers series, point and conversion queries against the rate store.

    Every operation validates its inputs in the same order before touching
    the store:

    1. date format (``FORMAT_ERROR``)
    2. date not after today (``FUTURE_DATE``)
    3. currency format (``INVALID_CURRENCY_FORMAT``)
    4. currency known to the registry, base currency always allowed
       (``INVALID_CURRENCY``)
    5. amount format (``FORMAT_ERROR``) and positivity (``INVALID_AMOUNT``)
    6. rate present in the store (``RATE_NOT_FOUND`` / ``NO_RATES_FOUND``)

    Successful store reads are cached until :meth:`invalidate_caches`.
    Rates are always surfaced rounded to 4 decimal places, half-up.
    """

    def __init__(
        self,
        store: BackendStrategy,
        registry: CurrencyRegistry,
        *,
        base_currency: str = "EUR",
        today: Callable[[], date] = date.today,
    ) -> None:
        self.store = store
        self.registry = registry
        self.base_currency = base_currency
        self._today = today
        self._series_cache: KeyValueCache[str, list[RatePoint]] = KeyValueCache("exchangeRates")
        self._rate_cache: KeyValueCache[tuple[str, date], RatePoint] = KeyValueCache(
            "exchangeRate"
        )

    def get_series(self, currency: str) -> list[RatePoint]:
        """Return every stored rate for ``currency``, newest first."""

        LOGGER.debug("Fetching exchange rates for currency: %s", currency)
        self._validate_currency(currency)
        rates = self._series_cache.get_or_load(currency, lambda: self._load_series(currency))
        LOGGER.debug("Found %s exchange rates for currency: %s", len(rates), currency)
        return list(rates)

    def _load_series(self, currency: str) -> list[RatePoint]:
        rates = [point.rounded() for point in self.store.find_by_currency(currency)]
        if not rates:
            LOGGER.error("No exchange rates found for currency: %s", currency)
            raise ExchangeRateError(
                ErrorKind.NO_RATES_FOUND,
                f"No exchange rates found for currency: {currency}",
                {"currency": currency},
            )
        return rates

    def get_rate(self, currency: str, rate_date: DateInput) -> RatePoint:
        """Return the rate of ``currency`` on ``rate_date``."""

        resolved_date = self._validate_date(rate_date)
        self._validate_currency(currency)
        LOGGER.debug("Fetching exchange rate for currency: %s on date: %s", currency, resolved_date)
        return self._rate_cache.get_or_load(
            (currency, resolved_date), lambda: self._load_rate(currency, resolved_date)
        )

    def _load_rate(self, currency: str, rate_date: date) -> RatePoint:
        point = self.store.find_by_currency_and_date(currency, rate_date)
        if point is None:
            LOGGER.error("No exchange rate found for currency %s on date %s", currency, rate_date)
            raise ExchangeRateError(
                ErrorKind.RATE_NOT_FOUND,
                f"No exchange rate found for currency {currency} on date {rate_date}",
                {"currency": currency, "date": rate_date.isoformat()},
            )
        return point.rounded()

    def convert(self, currency: str, amount: AmountInput, rate_date: DateInput) -> ConversionResult:
        """Convert ``amount`` of ``currency`` into the base currency.

        The stored rate is units of ``currency`` per one unit of the base
        currency, so the converted amount is ``amount / rate`` rounded to two
        decimals, half-up.
        """

        LOGGER.debug(
            "Converting %s %s to %s on date: %s", amount, currency, self.base_currency, rate_date
        )
        resolved_date = self._validate_date(rate_date)
        self._validate_currency(currency)
        resolved_amount = self._validate_amount(amount)

        point = self.get_rate(currency, resolved_date)
        LOGGER.debug("Using exchange rate: 1 %s = %s %s", self.base_currency, point.rate, currency)
        converted = quantize_amount(resolved_amount / point.rate)
        LOGGER.debug(
            "Conversion result: %s %s = %s %s (rate: %s)",
            resolved_amount,
            currency,
            converted,
            self.base_currency,
            point.rate,
        )
        return ConversionResult(
            currency=currency,
            amount=resolved_amount,
            rate=point.rate,
            converted_amount=converted,
            rate_date=resolved_date,
        )

    def invalidate_caches(self) -> None:
        """Drop every cached series and point lookup."""

        self._series_cache.invalidate()
        self._rate_cache.invalidate()
        LOGGER.info("Exchange rate caches invalidated")

    def _validate_date(self, value: DateInput) -> date:
        if value is None:
            LOGGER.error("Date cannot be null")
            raise InvalidFormatError(ErrorKind.FORMAT_ERROR, "Date cannot be null")
        try:
            resolved = parse_date(value if isinstance(value, date) else str(value))
        except ValueError as exc:
            LOGGER.error("Invalid date format: %s", value)
            raise InvalidFormatError(
                ErrorKind.FORMAT_ERROR,
                f"Date must be in YYYY-MM-DD format: {value}",
                {"date": str(value)},
            ) from exc
        if resolved > self._today():
            LOGGER.error("Cannot fetch exchange rate for future date: %s", resolved)
            raise ExchangeRateError(
                ErrorKind.FUTURE_DATE,
                f"Cannot fetch exchange rate for future date: {resolved}",
                {"date": resolved.isoformat()},
            )
        return resolved

    def _validate_currency(self, currency: object) -> None:
        if not is_valid_currency_format(currency):
            LOGGER.error("Invalid currency code format: %s", currency)
            raise InvalidFormatError(
                ErrorKind.INVALID_CURRENCY_FORMAT,
                "Currency code must be 3 uppercase letters",
                {"currency": currency},
            )
        if currency != self.base_currency and not self.registry.is_valid(currency):
            LOGGER.error("Invalid currency code: %s", currency)
            raise ExchangeRateError(
                ErrorKind.INVALID_CURRENCY,
                f"Invalid currency code: {currency}",
                {"currency": currency},
            )

    @staticmethod
    def _validate_amount(amount: AmountInput) -> Decimal:
        if amount is None:
            LOGGER.error("Amount cannot be null")
            raise InvalidFormatError(ErrorKind.FORMAT_ERROR, "Amount cannot be null")
        if isinstance(amount, bool):
            raise InvalidFormatError(ErrorKind.FORMAT_ERROR, "Amount must be a number")
        try:
            # str() keeps floats such as 100.1 from dragging binary noise along
            resolved = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
        except InvalidOperation as exc:
            LOGGER.error("Invalid amount format: %s", amount)
            raise InvalidFormatError(
                ErrorKind.FORMAT_ERROR,
                f"Amount must be a number: {amount}",
                {"amount": str(amount)},
            ) from exc
        if not resolved.is_finite():
            raise InvalidFormatError(
                ErrorKind.FORMAT_ERROR,
                f"Amount must be a finite number: {amount}",
                {"amount": str(amount)},
            )
        if resolved <= 0:
            LOGGER.error("Amount must be greater than zero: %s", resolved)
            raise ExchangeRateError(
                ErrorKind.INVALID_AMOUNT,
                "Amount must be greater than zero",
                {"amount": str(resolved)},
            )
        return resolved


__all__ = ["RateQueryService"]
