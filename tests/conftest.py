"""Shared fixtures: an on-disk SQLite store and an in-memory rate source."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Iterator

import pytest

from fx_bundesbank.db.sqlite_backend import SQLiteBackend
from fx_bundesbank.ingestion.models import RateEntry

SERIES_KEYS_PAYLOAD = (
    ",BBEX3.D.USD.EUR.BB.AC.000,BBEX3.D.USD.EUR.BB.AC.000_FLAGS,"
    "BBEX3.D.GBP.EUR.BB.AC.000,BBEX3.D.GBP.EUR.BB.AC.000_FLAGS\n"
    "last update,2023-01-03,,,\n"
)


class FakeRateSource:
    """Rate source serving canned series; failures are raised per currency."""

    def __init__(
        self,
        series: dict[str, list[RateEntry]] | None = None,
        keys: str | Exception = SERIES_KEYS_PAYLOAD,
        failures: dict[str, Exception] | None = None,
    ) -> None:
        self.series = dict(series or {})
        self.keys = keys
        self.failures = dict(failures or {})
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def fetch(self, currency: str) -> list[RateEntry]:
        with self._lock:
            self.calls.append(currency)
        if currency in self.failures:
            raise self.failures[currency]
        return list(self.series.get(currency, []))

    def fetch_series_keys(self) -> str:
        if isinstance(self.keys, Exception):
            raise self.keys
        return self.keys


def entry(day: str, rate: str) -> RateEntry:
    return RateEntry(rate_date=date.fromisoformat(day), rate=Decimal(rate))


def scenario_series() -> dict[str, list[RateEntry]]:
    return {
        "USD": [entry("2023-01-01", "1.2345"), entry("2023-01-02", "1.2346")],
        "GBP": [entry("2023-01-01", "0.8765")],
    }


@pytest.fixture
def store(tmp_path: Path) -> Iterator[SQLiteBackend]:
    backend = SQLiteBackend(tmp_path / "rates.db")
    yield backend
    backend.close()


@pytest.fixture
def source() -> FakeRateSource:
    return FakeRateSource(series=scenario_series())
