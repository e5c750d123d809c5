"""MongoDB backend strategy."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Sequence

from pymongo import ASCENDING, DESCENDING, MongoClient, UpdateOne
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from fx_bundesbank.db import DEFAULT_BATCH_SIZE
from fx_bundesbank.db.base_backend import BackendStrategy, PersistenceResult, chunked
from fx_bundesbank.ingestion.models import RatePoint
from fx_bundesbank.utils.logger import get_logger

LOGGER = get_logger(__name__)


class MongoBackend(BackendStrategy):
    """Backend strategy that persists rates and currency codes inside MongoDB.

    Dates are stored as ISO strings and rates as decimal strings so neither
    loses precision. Chunks are written with ordered ``insert_many`` calls;
    the unique ``(currency, rate_date)`` index rejects duplicates.
    """

    def __init__(self, url: str, *, database: str | None = None) -> None:
        self.url = url
        self._client = MongoClient(url)
        db = self._client.get_default_database() if database is None else self._client[database]
        if db is None:
            raise ValueError("MongoDB connection URI must include a database name")
        self._rates: Collection = db["exchange_rates"]
        self._currencies: Collection = db["currencies"]

    def ensure_schema(self) -> None:
        try:
            LOGGER.info("Ensuring MongoDB exchange rate collections exist")
            self._client.admin.command("ping")
            self._rates.create_index(
                [("currency", ASCENDING), ("rate_date", ASCENDING)], unique=True
            )
            self._currencies.create_index([("code", ASCENDING)], unique=True)
        except PyMongoError as exc:  # pragma: no cover - error path
            raise RuntimeError(f"Failed to ensure MongoDB schema: {exc}") from exc

    def save_all(
        self, points: Sequence[RatePoint], *, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> PersistenceResult:
        result = PersistenceResult()
        if not points:
            return result
        created_at = datetime.now(timezone.utc)
        try:
            for chunk in chunked(points, batch_size):
                self._rates.insert_many(
                    [
                        {
                            "currency": point.currency,
                            "rate_date": point.rate_date.isoformat(),
                            "rate": str(point.rate),
                            "created_at": created_at,
                        }
                        for point in chunk
                    ],
                    ordered=True,
                )
                result.inserted += len(chunk)
                result.batches += 1
        except PyMongoError as exc:
            raise RuntimeError(f"Failed to insert MongoDB rates: {exc}") from exc
        return result

    def find_by_currency(self, currency: str) -> list[RatePoint]:
        docs = self._rates.find({"currency": currency}).sort("rate_date", DESCENDING)
        return [_to_point(doc) for doc in docs]

    def find_by_currency_and_date(self, currency: str, rate_date: date) -> RatePoint | None:
        doc = self._rates.find_one({"currency": currency, "rate_date": rate_date.isoformat()})
        return _to_point(doc) if doc is not None else None

    def fetch_dates(self, currency: str) -> set[date]:
        docs = self._rates.find({"currency": currency}, {"rate_date": 1})
        return {date.fromisoformat(doc["rate_date"]) for doc in docs}

    def distinct_currencies(self) -> list[str]:
        return sorted(self._rates.distinct("currency"))

    def count_rates(self) -> int:
        return int(self._rates.count_documents({}))

    def upsert_currencies(self, codes: Iterable[str]) -> int:
        unique_codes = sorted(set(codes))
        if not unique_codes:
            return 0
        operations = [
            UpdateOne({"code": code}, {"$setOnInsert": {"code": code}}, upsert=True)
            for code in unique_codes
        ]
        try:
            outcome = self._currencies.bulk_write(operations, ordered=False)
        except PyMongoError as exc:
            raise RuntimeError(f"Failed to upsert MongoDB currencies: {exc}") from exc
        return int(outcome.upserted_count)

    def fetch_currencies(self) -> list[str]:
        return sorted(doc["code"] for doc in self._currencies.find({}, {"code": 1}))

    def currency_exists(self, code: str) -> bool:
        return self._currencies.find_one({"code": code}) is not None

    def count_currencies(self) -> int:
        return int(self._currencies.count_documents({}))

    def close(self) -> None:  # pragma: no cover - trivial cleanup
        self._client.close()


def _to_point(doc: dict[str, Any]) -> RatePoint:
    return RatePoint(
        currency=doc["currency"],
        rate_date=date.fromisoformat(doc["rate_date"]),
        rate=Decimal(str(doc["rate"])),
    )


__all__ = ["MongoBackend"]
