from datetime import date
from decimal import Decimal

from fx_bundesbank import ExchangeRateError, FxBundesbank

print(FxBundesbank.__version__)  # 0.1.0

# Default usage: bundled SQLite file, live Bundesbank API
fx = FxBundesbank()

# Discover currencies and load every missing rate (only when the store is empty)
fx.start(schedule=False)
print(fx.currencies()[:5])

# Full history for one currency, newest first
history = fx.rates("USD")
print(history[:2])

# Rate on a specific day
print(fx.rate("USD", date(2023, 1, 2)))

# Convert 100 USD into EUR using that day's rate
print(fx.convert("USD", Decimal("100.00"), date(2023, 1, 2)))

try:
    fx.rate("XYZ", date(2023, 1, 2))
except ExchangeRateError as exc:
    print(exc.kind, exc.message)  # ErrorKind.INVALID_CURRENCY ...

# Pull any new rates published since the last run and clear the query caches
report = fx.sync()
print(report.processed, report.added, report.failed)

fx.close()
