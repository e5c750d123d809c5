"""Database seeding utilities for :mod:`fx_bundesbank`."""

from __future__ import annotations

from typing import Any

__all__ = ["seed_exchange_rates"]


def __getattr__(name: str) -> Any:
    """Lazily expose the seed helper so importing the package stays cheap."""

    if name == "seed_exchange_rates":
        from fx_bundesbank.seeds.populate_rates import seed_exchange_rates as _seed

        return _seed
    raise AttributeError(f"module 'fx_bundesbank.seeds' has no attribute {name}")
