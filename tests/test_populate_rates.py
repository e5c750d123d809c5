"""Tests for the fx-bundesbank-sync command line entry point."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from conftest import FakeRateSource, scenario_series
from fx_bundesbank.config import Settings
from fx_bundesbank.exceptions import ErrorKind, SyncError
from fx_bundesbank.seeds import populate_rates
from fx_bundesbank.sync import CurrencyOutcome, SyncReport, SyncStage


def test_parse_args_defaults() -> None:
    args = populate_rates.parse_args([])

    assert args.db_url is None
    assert args.max_workers is None
    assert args.batch_size is None
    assert args.refresh_registry is True
    assert args.schedule is False


def test_parse_args_overrides() -> None:
    args = populate_rates.parse_args(
        ["--db", "sqlite:///x.db", "--workers", "3", "--batch-size", "50", "--skip-registry"]
    )

    assert args.db_url == "sqlite:///x.db"
    assert args.max_workers == 3
    assert args.batch_size == 50
    assert args.refresh_registry is False


def test_seed_exchange_rates_populates_store(tmp_path: Path) -> None:
    settings = Settings(db_url=f"sqlite:///{tmp_path / 'seed.db'}")

    report = populate_rates.seed_exchange_rates(
        settings=settings, source=FakeRateSource(series=scenario_series())
    )

    assert report.processed == 2
    assert report.added == 3
    assert report.failed == 0


def test_seed_exchange_rates_can_skip_registry_refresh(tmp_path: Path) -> None:
    settings = Settings(db_url=f"sqlite:///{tmp_path / 'seed.db'}")
    source = FakeRateSource(series=scenario_series())

    report = populate_rates.seed_exchange_rates(
        settings=settings, refresh_registry=False, source=source
    )

    assert report.processed == 0
    assert source.calls == []


def test_seeds_package_exposes_helper_lazily() -> None:
    from fx_bundesbank import seeds

    assert seeds.seed_exchange_rates is populate_rates.seed_exchange_rates
    with pytest.raises(AttributeError):
        seeds.missing_helper  # noqa: B018


@pytest.mark.parametrize("failed, exit_code", [(False, 0), (True, 1)])
def test_main_exit_code_reflects_failures(
    monkeypatch: pytest.MonkeyPatch, failed: bool, exit_code: int
) -> None:
    captured: dict[str, Any] = {}

    def fake_seed(*, settings: Settings, refresh_registry: bool) -> SyncReport:
        captured["settings"] = settings
        captured["refresh_registry"] = refresh_registry
        outcome = CurrencyOutcome(currency="USD", stage=SyncStage.DONE)
        if failed:
            outcome.stage = SyncStage.FAILED
            outcome.error = SyncError(ErrorKind.SYNC_FETCH_FAILURE, "boom")
        return SyncReport(outcomes=[outcome])

    monkeypatch.delenv("FX_BUNDESBANK_MAX_WORKERS", raising=False)
    monkeypatch.setattr(populate_rates, "seed_exchange_rates", fake_seed)

    assert populate_rates.main(["--db", "sqlite:///x.db", "--batch-size", "10"]) == exit_code
    assert captured["settings"].db_url == "sqlite:///x.db"
    assert captured["settings"].batch_size == 10
    assert captured["settings"].max_workers == 8
    assert captured["refresh_registry"] is True
