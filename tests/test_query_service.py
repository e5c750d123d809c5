"""Tests for validated rate lookups and conversions."""

from __future__ import annotations

import threading
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from conftest import FakeRateSource
from fx_bundesbank.db.sqlite_backend import SQLiteBackend
from fx_bundesbank.exceptions import ErrorKind, ExchangeRateError, InvalidFormatError
from fx_bundesbank.ingestion.models import RatePoint
from fx_bundesbank.query import RateQueryService
from fx_bundesbank.registry import CurrencyRegistry
from fx_bundesbank.sync import SyncEngine

TODAY = date(2023, 6, 1)


@pytest.fixture
def service(store: SQLiteBackend, source: FakeRateSource) -> RateQueryService:
    registry = CurrencyRegistry(store, source)
    registry.refresh()
    SyncEngine(store, source, registry).sync_all()
    return RateQueryService(store, registry, today=lambda: TODAY)


def _kind(excinfo: pytest.ExceptionInfo[ExchangeRateError]) -> ErrorKind:
    return excinfo.value.kind


def test_get_series_returns_newest_first(service: RateQueryService) -> None:
    series = service.get_series("USD")

    assert [point.rate_date for point in series] == [date(2023, 1, 2), date(2023, 1, 1)]
    assert series[0].rate == Decimal("1.2346")


def test_get_series_without_rates(service: RateQueryService, store: SQLiteBackend) -> None:
    store.upsert_currencies(["JPY"])

    with pytest.raises(ExchangeRateError) as excinfo:
        service.get_series("JPY")

    assert _kind(excinfo) is ErrorKind.NO_RATES_FOUND


def test_rates_are_rounded_half_up_to_four_places(
    service: RateQueryService, store: SQLiteBackend
) -> None:
    store.upsert_currencies(["JPY"])
    store.save_all([RatePoint("JPY", date(2023, 2, 1), Decimal("140.123450"))])

    assert service.get_rate("JPY", date(2023, 2, 1)).rate == Decimal("140.1235")
    assert service.get_series("JPY")[0].rate == Decimal("140.1235")


def test_convert_divides_amount_by_rate(service: RateQueryService) -> None:
    result = service.convert("USD", Decimal("100.00"), date(2023, 1, 1))

    assert result.converted_amount == Decimal("81.00")
    assert result.rate == Decimal("1.2345")
    assert result.amount == Decimal("100.00")
    assert result.currency == "USD"
    assert result.rate_date == date(2023, 1, 1)


@pytest.mark.parametrize("amount", ["100", 100, 100.0])
def test_convert_accepts_numeric_inputs(service: RateQueryService, amount: object) -> None:
    assert service.convert("USD", amount, "2023-01-01").converted_amount == Decimal("81.00")


def test_get_rate_accepts_strings_and_datetimes(service: RateQueryService) -> None:
    assert service.get_rate("GBP", "2023-01-01").rate == Decimal("0.8765")
    assert service.get_rate("GBP", datetime(2023, 1, 1, 12, 30)).rate == Decimal("0.8765")


def test_unknown_currency_is_rejected(service: RateQueryService) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.get_rate("XYZ", date(2023, 1, 1))

    assert _kind(excinfo) is ErrorKind.INVALID_CURRENCY
    assert str(excinfo.value).startswith("INVALID_CURRENCY:")


@pytest.mark.parametrize("currency", ["usd", "US", "USDX", "", None])
def test_malformed_currency_is_rejected(service: RateQueryService, currency: object) -> None:
    with pytest.raises(InvalidFormatError) as excinfo:
        service.get_series(currency)

    assert _kind(excinfo) is ErrorKind.INVALID_CURRENCY_FORMAT


def test_missing_rate_on_past_date(service: RateQueryService) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.get_rate("USD", date(2023, 1, 5))

    assert _kind(excinfo) is ErrorKind.RATE_NOT_FOUND
    assert excinfo.value.context == {"currency": "USD", "date": "2023-01-05"}


def test_base_currency_passes_validation_but_has_no_rates(service: RateQueryService) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.get_rate("EUR", date(2023, 1, 1))

    assert _kind(excinfo) is ErrorKind.RATE_NOT_FOUND


@pytest.mark.parametrize("value", [None, "2023/01/01", "yesterday", "2023-13-01"])
def test_malformed_dates_are_rejected(service: RateQueryService, value: object) -> None:
    with pytest.raises(InvalidFormatError) as excinfo:
        service.get_rate("USD", value)

    assert _kind(excinfo) is ErrorKind.FORMAT_ERROR


def test_future_date_is_checked_before_currency(service: RateQueryService) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.get_rate("XYZ", date(2023, 6, 2))

    assert _kind(excinfo) is ErrorKind.FUTURE_DATE


def test_today_is_not_a_future_date(service: RateQueryService) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.get_rate("USD", TODAY)

    assert _kind(excinfo) is ErrorKind.RATE_NOT_FOUND


def test_date_format_is_checked_before_currency_format(service: RateQueryService) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.convert("bad", Decimal("1"), "not-a-date")

    assert _kind(excinfo) is ErrorKind.FORMAT_ERROR


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5"), -1, "0.00"])
def test_non_positive_amounts_are_rejected(service: RateQueryService, amount: object) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.convert("USD", amount, date(2023, 1, 1))

    assert _kind(excinfo) is ErrorKind.INVALID_AMOUNT


@pytest.mark.parametrize("amount", [None, "ten", True, float("nan"), "Infinity"])
def test_malformed_amounts_are_rejected(service: RateQueryService, amount: object) -> None:
    with pytest.raises(InvalidFormatError) as excinfo:
        service.convert("USD", amount, date(2023, 1, 1))

    assert _kind(excinfo) is ErrorKind.FORMAT_ERROR


def test_currency_is_checked_before_amount(service: RateQueryService) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.convert("XYZ", Decimal("-1"), date(2023, 1, 1))

    assert _kind(excinfo) is ErrorKind.INVALID_CURRENCY


def test_amount_is_checked_before_rate_existence(service: RateQueryService) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.convert("USD", Decimal("0"), date(2023, 1, 5))

    assert _kind(excinfo) is ErrorKind.INVALID_AMOUNT


def test_results_are_cached_until_invalidated(
    service: RateQueryService, store: SQLiteBackend
) -> None:
    assert len(service.get_series("USD")) == 2
    store.save_all([RatePoint("USD", date(2023, 1, 3), Decimal("1.2400"))])

    assert len(service.get_series("USD")) == 2

    service.invalidate_caches()
    assert len(service.get_series("USD")) == 3


def test_missing_rates_are_not_cached(service: RateQueryService, store: SQLiteBackend) -> None:
    with pytest.raises(ExchangeRateError):
        service.get_rate("USD", date(2023, 1, 3))

    store.save_all([RatePoint("USD", date(2023, 1, 3), Decimal("1.2400"))])

    assert service.get_rate("USD", date(2023, 1, 3)).rate == Decimal("1.2400")


def test_convert_rejects_future_date_before_currency_and_amount(
    service: RateQueryService,
) -> None:
    with pytest.raises(ExchangeRateError) as excinfo:
        service.convert("XYZ", Decimal("-1"), TODAY + timedelta(days=1))

    assert _kind(excinfo) is ErrorKind.FUTURE_DATE


def test_invalidation_during_read_is_not_undone(
    service: RateQueryService, store: SQLiteBackend, monkeypatch: pytest.MonkeyPatch
) -> None:
    original_find = store.find_by_currency
    read_done = threading.Event()
    release = threading.Event()

    def blocking_find(currency: str) -> list[RatePoint]:
        points = original_find(currency)
        read_done.set()
        release.wait(5)
        return points

    monkeypatch.setattr(store, "find_by_currency", blocking_find)
    results: list[list[RatePoint]] = []
    reader = threading.Thread(target=lambda: results.append(service.get_series("USD")))
    reader.start()
    assert read_done.wait(5)

    store.save_all([RatePoint("USD", date(2023, 1, 3), Decimal("1.2400"))])
    service.invalidate_caches()
    release.set()
    reader.join(5)

    assert len(results[0]) == 2
    assert len(service.get_series("USD")) == 3
