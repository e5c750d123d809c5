"""Decimal helpers shared by the query and ingestion layers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

RATE_QUANTUM = Decimal("0.0001")
AMOUNT_QUANTUM = Decimal("0.01")


def quantize_rate(value: Decimal) -> Decimal:
    """Round an exchange rate to 4 decimal places, half-up."""

    return value.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_amount(value: Decimal) -> Decimal:
    """Round a monetary amount to 2 decimal places, half-up."""

    return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


__all__ = ["AMOUNT_QUANTUM", "RATE_QUANTUM", "quantize_amount", "quantize_rate"]
