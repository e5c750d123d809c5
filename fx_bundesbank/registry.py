"""Currency discovery and validity checks."""

from __future__ import annotations

from fx_bundesbank.cache import KeyValueCache
from fx_bundesbank.config import CURRENCY_CODE_PATTERN
from fx_bundesbank.db.base_backend import BackendStrategy
from fx_bundesbank.ingestion.bundesbank import parse_currency_keys
from fx_bundesbank.ingestion.strategy import RateSource
from fx_bundesbank.utils.logger import get_logger

LOGGER = get_logger(__name__)

_ALL_KEY = "all"


def is_valid_currency_format(code: object) -> bool:
    """Return True for exactly three uppercase ASCII letters."""

    return isinstance(code, str) and CURRENCY_CODE_PATTERN.fullmatch(code) is not None


class CurrencyRegistry:
    """Keeps the set of currency codes the provider publishes rates for.

    The list is persisted through the backend so it survives restarts and is
    refreshed wholesale (upsert-only, stale codes are kept) on a schedule.
    """

    def __init__(
        self,
        store: BackendStrategy,
        source: RateSource,
        *,
        base_currency: str = "EUR",
    ) -> None:
        self.store = store
        self.source = source
        self.base_currency = base_currency
        self._cache: KeyValueCache[str, list[str]] = KeyValueCache("currencies")

    def initialise(self) -> int:
        """Populate the registry on first start; no-op when codes are already stored."""

        if self.store.count_currencies() > 0:
            LOGGER.info("Currency registry already populated")
            return 0
        LOGGER.info("Initializing currency data...")
        return self.refresh()

    def refresh(self) -> int:
        """Re-discover currency codes from the provider and upsert them.

        Failures are logged and swallowed so a provider outage leaves the
        existing registry untouched. Returns the number of codes discovered.
        """

        try:
            payload = self.source.fetch_series_keys()
            codes = parse_currency_keys(payload, base_currency=self.base_currency)
            added = self.store.upsert_currencies(codes)
        except Exception as exc:  # provider and store errors are both non-fatal here
            LOGGER.error("Failed to update currencies: %s", exc)
            return 0
        self._cache.invalidate()
        LOGGER.info("Successfully updated %s currencies (%s new)", len(codes), added)
        return len(codes)

    def all_currencies(self) -> list[str]:
        """Return every stored code that still passes the format check."""

        return list(self._cache.get_or_load(_ALL_KEY, self._load_currencies))

    def _load_currencies(self) -> list[str]:
        LOGGER.debug("Fetching all currencies")
        currencies = sorted(
            code for code in self.store.fetch_currencies() if is_valid_currency_format(code)
        )
        LOGGER.debug("Found %s valid currencies", len(currencies))
        return currencies

    def is_valid(self, code: object) -> bool:
        """Return True when ``code`` is well formed and known to the registry."""

        return is_valid_currency_format(code) and self.store.currency_exists(str(code))

    def invalidate_cache(self) -> None:
        self._cache.invalidate()


__all__ = ["CurrencyRegistry", "is_valid_currency_format"]
