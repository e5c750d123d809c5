"""Concurrent per-currency synchronisation of provider rates into the store."""

from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Iterable, Sequence

from fx_bundesbank.db import DEFAULT_BATCH_SIZE
from fx_bundesbank.db.base_backend import BackendStrategy
from fx_bundesbank.exceptions import ErrorKind, SyncError
from fx_bundesbank.ingestion.models import RateEntry, RatePoint
from fx_bundesbank.ingestion.strategy import RateSource
from fx_bundesbank.registry import CurrencyRegistry
from fx_bundesbank.utils.logger import get_logger

LOGGER = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8


class SyncStage(str, Enum):
    """Pipeline position of one currency; ``DONE`` and ``FAILED`` are terminal."""

    FETCH = "FETCH"
    DIFF = "DIFF"
    PERSIST = "PERSIST"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(slots=True)
class CurrencyOutcome:
    currency: str
    stage: SyncStage = SyncStage.FETCH
    fetched: int = 0
    added: int = 0
    failed_at: SyncStage | None = None
    error: SyncError | None = None

    @property
    def succeeded(self) -> bool:
        return self.stage is SyncStage.DONE

    @property
    def error_kind(self) -> ErrorKind | None:
        return self.error.kind if self.error is not None else None


@dataclass(slots=True)
class SyncReport:
    """Aggregate result of one :meth:`SyncEngine.sync_all` run."""

    outcomes: list[CurrencyOutcome] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def added(self) -> int:
        return sum(outcome.added for outcome in self.outcomes)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.succeeded)

    @property
    def failed_currencies(self) -> list[str]:
        return sorted(outcome.currency for outcome in self.outcomes if not outcome.succeeded)

    def outcome_for(self, currency: str) -> CurrencyOutcome | None:
        for outcome in self.outcomes:
            if outcome.currency == currency:
                return outcome
        return None


def select_new_points(
    currency: str, entries: Iterable[RateEntry], existing_dates: set[date]
) -> list[RatePoint]:
    """Return points for entries whose date is not stored yet.

    Duplicate dates within ``entries`` collapse to the first occurrence so a
    single batch never violates the ``(currency, rate_date)`` constraint.
    """

    seen = set(existing_dates)
    points: list[RatePoint] = []
    for entry in entries:
        if entry.rate_date in seen:
            continue
        seen.add(entry.rate_date)
        points.append(RatePoint(currency=currency, rate_date=entry.rate_date, rate=entry.rate))
    return points


class SyncEngine:
    """Runs FETCH -> DIFF -> PERSIST for every registered currency.

    Each currency is an isolated unit of work on a bounded thread pool. A
    failing currency is recorded on the report and never affects the others.
    """

    def __init__(
        self,
        store: BackendStrategy,
        source: RateSource,
        registry: CurrencyRegistry,
        *,
        max_workers: int = DEFAULT_MAX_WORKERS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        on_synced: Sequence[Callable[[SyncReport], None]] = (),
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be positive")
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.source = source
        self.registry = registry
        self.max_workers = max_workers
        self.batch_size = batch_size
        self._callbacks: list[Callable[[SyncReport], None]] = list(on_synced)

    def add_listener(self, callback: Callable[[SyncReport], None]) -> None:
        """Register ``callback`` to run after every startup or scheduled sync."""

        self._callbacks.append(callback)

    def sync_currency(self, currency: str) -> CurrencyOutcome:
        """Run the pipeline for one currency. Never raises."""

        outcome = CurrencyOutcome(currency=currency)
        try:
            entries = self.source.fetch(currency)
            outcome.fetched = len(entries)
            LOGGER.debug("Fetched %s rates for currency: %s", outcome.fetched, currency)

            outcome.stage = SyncStage.DIFF
            existing_dates = self.store.fetch_dates(currency)
            new_points = select_new_points(currency, entries, existing_dates)

            outcome.stage = SyncStage.PERSIST
            if new_points:
                result = self.store.save_all(new_points, batch_size=self.batch_size)
                outcome.added = result.inserted
                LOGGER.info("Saved %s rates for currency %s", outcome.added, currency)
            else:
                LOGGER.debug("No new rates for currency: %s", currency)
            outcome.stage = SyncStage.DONE
        except Exception as exc:  # isolate the failure to this currency
            kind = (
                ErrorKind.SYNC_FETCH_FAILURE
                if outcome.stage is SyncStage.FETCH
                else ErrorKind.SYNC_PERSIST_FAILURE
            )
            error = SyncError(
                kind,
                f"Error processing rates for {currency}: {exc}",
                {"currency": currency, "stage": outcome.stage.value},
            )
            error.__cause__ = exc
            outcome.failed_at = outcome.stage
            outcome.stage = SyncStage.FAILED
            outcome.error = error
            outcome.added = 0
            LOGGER.error("%s (%s)", error.message, kind.value, exc_info=exc)
        return outcome

    def sync_all(self) -> SyncReport:
        """Synchronise every registered currency and wait for all of them."""

        started = time.monotonic()
        currencies = self.registry.all_currencies()
        LOGGER.info(
            "Processing %s currencies with up to %s workers", len(currencies), self.max_workers
        )
        report = SyncReport()
        if currencies:
            with ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="fx-sync"
            ) as executor:
                futures: dict[Future[CurrencyOutcome], str] = {
                    executor.submit(self.sync_currency, currency): currency
                    for currency in currencies
                }
                for future in as_completed(futures):
                    report.outcomes.append(self._collect(future, futures[future]))
        report.outcomes.sort(key=lambda outcome: outcome.currency)
        report.duration_seconds = time.monotonic() - started
        LOGGER.info(
            "Exchange rates update completed in %.2f seconds: %s processed, %s added, %s failed",
            report.duration_seconds,
            report.processed,
            report.added,
            report.failed,
        )
        if report.failed:
            LOGGER.warning("Currencies failed to sync: %s", ", ".join(report.failed_currencies))
        return report

    @staticmethod
    def _collect(future: Future[CurrencyOutcome], currency: str) -> CurrencyOutcome:
        try:
            return future.result()
        except Exception as exc:  # pragma: no cover - sync_currency already isolates errors
            error = SyncError(ErrorKind.SYNC_PERSIST_FAILURE, str(exc), {"currency": currency})
            return CurrencyOutcome(currency=currency, stage=SyncStage.FAILED, error=error)

    def run_startup_sync(self) -> SyncReport | None:
        """Run :meth:`sync_all` once when the store holds no rates yet."""

        if not self.store.is_empty():
            LOGGER.info("Exchange rate data already exists in database")
            return None
        LOGGER.info("Initializing exchange rate data...")
        return self._run_and_notify()

    def run_scheduled_sync(self) -> SyncReport:
        """Entry point for the recurring weekday job."""

        LOGGER.info("Starting scheduled exchange rates update")
        return self._run_and_notify()

    def _run_and_notify(self) -> SyncReport:
        report = self.sync_all()
        for callback in self._callbacks:
            callback(report)
        return report


__all__ = [
    "CurrencyOutcome",
    "DEFAULT_MAX_WORKERS",
    "SyncEngine",
    "SyncReport",
    "SyncStage",
    "select_new_points",
]
