"""SQLAlchemy powered backend shared by SQLite, PostgreSQL and MySQL."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Sequence

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    func,
    insert,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from fx_bundesbank.db import DEFAULT_BATCH_SIZE
from fx_bundesbank.db.base_backend import BackendStrategy, PersistenceResult, chunked
from fx_bundesbank.ingestion.models import RatePoint
from fx_bundesbank.utils.logger import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class ExchangeRateRow(Base):
    __tablename__ = "exchange_rates"
    __table_args__ = (
        UniqueConstraint("currency", "rate_date", name="uq_exchange_rates_currency_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    currency = Column(String(3), nullable=False, index=True)
    rate_date = Column(Date, nullable=False, index=True)
    rate = Column(Numeric(19, 6), nullable=False)
    created_at = Column(DateTime, server_default=func.current_timestamp())


class CurrencyRow(Base):
    __tablename__ = "currencies"

    code = Column(String(3), primary_key=True)


class RelationalBackend(BackendStrategy):
    """Backend that keeps rates and currency codes in a SQL database."""

    def __init__(self, url: str, *, engine_options: dict[str, Any] | None = None) -> None:
        self.url = url
        options: dict[str, Any] = {"future": True}
        if url.startswith("sqlite"):
            # Sync workers write from several threads; wait for the file lock
            # instead of failing immediately.
            options["connect_args"] = {"check_same_thread": False, "timeout": 30}
        options.update(engine_options or {})
        self._engine_options = options
        self._engine_instance: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    def _get_engine(self) -> Engine:
        if self._engine_instance is None:
            self._engine_instance = create_engine(self.url, **self._engine_options)
        return self._engine_instance

    def _sessions(self) -> sessionmaker[Session]:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self._get_engine(), expire_on_commit=False, future=True
            )
        return self._session_factory

    def ensure_schema(self) -> None:
        engine = self._get_engine()
        LOGGER.info("Ensuring exchange_rates/currencies schema exists")
        with engine.begin() as connection:
            connection.execute(text("SELECT 1"))
        Base.metadata.create_all(engine)

    def save_all(
        self, points: Sequence[RatePoint], *, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> PersistenceResult:
        result = PersistenceResult()
        if not points:
            return result
        # One transaction for every chunk: a conflict anywhere rolls back the
        # whole batch for this currency.
        with self._sessions().begin() as session:
            for chunk in chunked(points, batch_size):
                session.execute(
                    insert(ExchangeRateRow),
                    [
                        {"currency": point.currency, "rate_date": point.rate_date, "rate": point.rate}
                        for point in chunk
                    ],
                )
                result.inserted += len(chunk)
                result.batches += 1
        return result

    def find_by_currency(self, currency: str) -> list[RatePoint]:
        stmt = (
            select(ExchangeRateRow)
            .where(ExchangeRateRow.currency == currency)
            .order_by(ExchangeRateRow.rate_date.desc())
        )
        with self._sessions()() as session:
            return [_to_point(row) for row in session.execute(stmt).scalars()]

    def find_by_currency_and_date(self, currency: str, rate_date: date) -> RatePoint | None:
        stmt = select(ExchangeRateRow).where(
            ExchangeRateRow.currency == currency, ExchangeRateRow.rate_date == rate_date
        )
        with self._sessions()() as session:
            row = session.execute(stmt).scalars().first()
            return _to_point(row) if row is not None else None

    def fetch_dates(self, currency: str) -> set[date]:
        stmt = select(ExchangeRateRow.rate_date).where(ExchangeRateRow.currency == currency)
        with self._sessions()() as session:
            return {_normalise_rate_date(value) for value in session.execute(stmt).scalars()}

    def distinct_currencies(self) -> list[str]:
        stmt = select(ExchangeRateRow.currency).distinct().order_by(ExchangeRateRow.currency)
        with self._sessions()() as session:
            return list(session.execute(stmt).scalars())

    def count_rates(self) -> int:
        with self._sessions()() as session:
            return int(session.execute(select(func.count(ExchangeRateRow.id))).scalar_one())

    def upsert_currencies(self, codes: Iterable[str]) -> int:
        unique_codes = sorted(set(codes))
        if not unique_codes:
            return 0
        with self._sessions().begin() as session:
            existing = set(
                session.execute(
                    select(CurrencyRow.code).where(CurrencyRow.code.in_(unique_codes))
                ).scalars()
            )
            new_codes = [code for code in unique_codes if code not in existing]
            if new_codes:
                session.execute(insert(CurrencyRow), [{"code": code} for code in new_codes])
        return len(new_codes)

    def fetch_currencies(self) -> list[str]:
        with self._sessions()() as session:
            return list(session.execute(select(CurrencyRow.code).order_by(CurrencyRow.code)).scalars())

    def currency_exists(self, code: str) -> bool:
        with self._sessions()() as session:
            return session.get(CurrencyRow, code) is not None

    def count_currencies(self) -> int:
        with self._sessions()() as session:
            return int(session.execute(select(func.count(CurrencyRow.code))).scalar_one())

    def close(self) -> None:
        if self._engine_instance is not None:
            self._engine_instance.dispose()
            self._engine_instance = None
            self._session_factory = None


def _to_point(row: ExchangeRateRow) -> RatePoint:
    return RatePoint(
        currency=str(row.currency),
        rate_date=_normalise_rate_date(row.rate_date),
        rate=_normalise_rate(row.rate),
    )


def _normalise_rate(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _normalise_rate_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


__all__ = ["Base", "CurrencyRow", "ExchangeRateRow", "RelationalBackend"]
