"""Client and parsers for the Deutsche Bundesbank time-series REST API."""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from fx_bundesbank.config import CURRENCY_CODE_PATTERN, DEFAULT_API_BASE_URL
from fx_bundesbank.exceptions import RateSourceError
from fx_bundesbank.ingestion.models import RateEntry
from fx_bundesbank.utils.logger import get_logger

LOGGER = get_logger(__name__)

DATASET = "BBEX3"
FREQUENCY = "D"
SERIES_SUFFIX = "BB.AC.000"
FLAGS_SUFFIX = "_FLAGS"
NOT_AVAILABLE = "."
HEADER_LINES = 2


def parse_rate_series(payload: str | None, *, delimiter: str = ",") -> list[RateEntry]:
    """Parse a ``detail=dataonly`` CSV series into rate entries.

    The first two lines carry the header and the last-update stamp. Comment
    rows, rows flagged as not available (``.``) and rows whose date or rate do
    not parse are skipped individually.
    """

    entries: list[RateEntry] = []
    if not payload:
        return entries

    for line in payload.splitlines()[HEADER_LINES:]:
        line = line.strip()
        if not line:
            continue
        parts = line.split(delimiter)
        if len(parts) < 2:
            continue
        if parts[0] == '""' or "Comment" in parts[0]:
            LOGGER.debug("Skipping comment line: %s", line)
            continue

        date_raw = parts[0].replace('"', "").strip()
        rate_raw = parts[1].replace('"', "").strip()
        if rate_raw == NOT_AVAILABLE:
            continue
        try:
            rate_date = date.fromisoformat(date_raw)
        except ValueError:
            LOGGER.debug("Skipping invalid date format: %s", date_raw)
            continue
        try:
            rate = Decimal(rate_raw)
        except InvalidOperation:
            LOGGER.debug("Skipping invalid rate format: %s", rate_raw)
            continue
        if not rate.is_finite():
            LOGGER.debug("Skipping non-finite rate: %s", rate_raw)
            continue
        entries.append(RateEntry(rate_date=rate_date, rate=rate))

    LOGGER.debug("Parsed %s exchange rates from CSV", len(entries))
    return entries


def series_key_pattern(base_currency: str = "EUR") -> re.Pattern[str]:
    """Match ``BBEX3.D.<CODE>.<BASE>.BB.AC.000`` keys plus their ``_FLAGS`` twins."""

    return re.compile(
        rf"{DATASET}\.{FREQUENCY}\.(\w{{3}})\.{re.escape(base_currency)}\."
        rf"{re.escape(SERIES_SUFFIX)}({FLAGS_SUFFIX})?(?!\w)"
    )


def parse_currency_keys(payload: str | None, *, base_currency: str = "EUR") -> set[str]:
    """Extract the currency codes advertised by a ``serieskeyonly`` listing."""

    codes: set[str] = set()
    if not payload:
        return codes
    for match in series_key_pattern(base_currency).finditer(payload):
        code, flags = match.group(1), match.group(2)
        if flags:
            continue
        if code == base_currency or not CURRENCY_CODE_PATTERN.fullmatch(code):
            continue
        codes.add(code)
    return codes


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, requests.HTTPError):
        status = exc.response.status_code if exc.response is not None else None
        return status is None or status == 429 or status >= 500
    return isinstance(exc, requests.RequestException)


class BundesbankClient:
    """Fetch EUR reference rate series from the Bundesbank statistics API."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_API_BASE_URL,
        base_currency: str = "EUR",
        timeout: float = 30.0,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.base_currency = base_currency
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", "fx-bundesbank-ingestor/1.0")

    def series_url(self, currency: str) -> str:
        return (
            f"{self.base_url}/data/{DATASET}/"
            f"{FREQUENCY}.{currency}.{self.base_currency}.{SERIES_SUFFIX}"
        )

    def series_keys_url(self) -> str:
        return f"{self.base_url}/data/{DATASET}/{FREQUENCY}..{self.base_currency}.{SERIES_SUFFIX}"

    def fetch(self, currency: str) -> list[RateEntry]:
        """Download and parse the daily series for ``currency``."""

        LOGGER.info("Fetching exchange rates from Bundesbank API for currency: %s", currency)
        payload = self._get(
            self.series_url(currency),
            params={"format": "csv", "lang": "en", "detail": "dataonly"},
            context={"currency": currency},
        )
        return parse_rate_series(payload)

    def fetch_series_keys(self) -> str:
        """Download the wide series-key listing used for currency discovery."""

        LOGGER.info("Fetching currency series keys from Bundesbank API")
        return self._get(
            self.series_keys_url(),
            params={"detail": "serieskeyonly", "format": "csv"},
            context={},
        )

    def _get(self, url: str, *, params: dict[str, str], context: dict[str, str]) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=30),
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    response = self.session.get(url, params=params, timeout=self.timeout)
                    response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise RateSourceError(
                f"Bundesbank API responded with HTTP {status} for {url}",
                {**context, "url": url, "status_code": status},
            ) from exc
        except requests.RequestException as exc:
            raise RateSourceError(
                f"Unable to reach Bundesbank API at {url}: {exc}",
                {**context, "url": url},
            ) from exc
        return response.text

    def _log_retry(self, state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome is not None else None
        LOGGER.warning(
            "Attempt %s/%s against Bundesbank API failed: %s",
            state.attempt_number,
            self.max_attempts,
            exc,
        )

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "BundesbankClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = [
    "BundesbankClient",
    "parse_currency_keys",
    "parse_rate_series",
    "series_key_pattern",
]
