"""CLI for populating the exchange-rate store from the Bundesbank API."""

from __future__ import annotations

import argparse
from typing import Sequence

from fx_bundesbank import FxBundesbank
from fx_bundesbank.config import Settings
from fx_bundesbank.ingestion.strategy import RateSource
from fx_bundesbank.sync import SyncReport
from fx_bundesbank.utils.logger import get_logger

LOGGER = get_logger(__name__)

__all__ = ["seed_exchange_rates", "parse_args", "main"]


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--db",
        dest="db_url",
        help="Database URL (sqlite:///path.db, postgresql://..., mongodb://...)",
    )
    parser.add_argument("--workers", dest="max_workers", type=int, help="Concurrent currency fetches")
    parser.add_argument("--batch-size", dest="batch_size", type=int, help="Rows per insert chunk")
    parser.add_argument(
        "--skip-registry",
        dest="refresh_registry",
        action="store_false",
        default=True,
        help="Do not refresh the currency list before syncing",
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Keep running and sync every weekday at FX_BUNDESBANK_SYNC_TIME",
    )
    return parser.parse_args(argv)


def _log_report(report: SyncReport) -> None:
    LOGGER.info(
        "Sync finished: %s currencies processed, %s rates added, %s failed",
        report.processed,
        report.added,
        report.failed,
    )


def seed_exchange_rates(
    *,
    settings: Settings | None = None,
    refresh_registry: bool = True,
    source: RateSource | None = None,
) -> SyncReport:
    """Refresh the currency registry (optionally) and sync every currency once."""

    with FxBundesbank(settings=settings or Settings.from_env(), source=source) as fx:
        if refresh_registry:
            fx.refresh_currencies()
        report = fx.sync()
    _log_report(report)
    return report


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env().with_overrides(
        db_url=args.db_url,
        max_workers=args.max_workers,
        batch_size=args.batch_size,
    )
    if not args.schedule:
        report = seed_exchange_rates(settings=settings, refresh_registry=args.refresh_registry)
        return 1 if report.failed else 0

    fx = FxBundesbank(settings=settings)
    try:
        fx.start(schedule=False)
        fx.schedule_jobs()
        fx.scheduler.run_forever()
    except KeyboardInterrupt:
        LOGGER.info("Interrupted; shutting down scheduler")
    finally:
        fx.close()
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
