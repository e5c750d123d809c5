"""Runtime configuration for fx_bundesbank."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields, replace
from datetime import time
from typing import Any, Mapping

from fx_bundesbank.utils.calendar import parse_time

ENV_PREFIX = "FX_BUNDESBANK_"
DEFAULT_API_BASE_URL = "https://api.statistiken.bundesbank.de/rest"
CURRENCY_CODE_PATTERN = re.compile(r"[A-Z]{3}")


@dataclass(slots=True)
class Settings:
    """Tunable knobs shared by the sync pipeline, the store and the scheduler.

    Every field can be overridden through an ``FX_BUNDESBANK_<FIELD>``
    environment variable (for example ``FX_BUNDESBANK_MAX_WORKERS=4``).
    """

    db_url: str | None = None
    api_base_url: str = DEFAULT_API_BASE_URL
    base_currency: str = "EUR"
    max_workers: int = 8
    batch_size: int = 1000
    sync_time: time = time(16, 0)
    registry_refresh_time: time = time(0, 0)
    request_timeout: float = 30.0
    max_attempts: int = 3
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not CURRENCY_CODE_PATTERN.fullmatch(self.base_currency or ""):
            raise ValueError("base_currency must be a 3-letter uppercase code")
        if self.max_workers < 1:
            raise ValueError("max_workers must be positive")
        if self.batch_size < 1:
            raise ValueError("batch_size must be positive")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be positive")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        self.api_base_url = self.api_base_url.rstrip("/")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``FX_BUNDESBANK_*`` variables, falling back to defaults."""

        env = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for field in fields(cls):
            raw = env.get(f"{ENV_PREFIX}{field.name.upper()}")
            if raw is None or raw == "":
                continue
            overrides[field.name] = _coerce(field.name, raw)
        return cls(**overrides)

    def with_overrides(self, **changes: Any) -> "Settings":
        """Return a copy with ``changes`` applied, skipping ``None`` values."""

        return replace(self, **{key: value for key, value in changes.items() if value is not None})


def _coerce(name: str, raw: str) -> Any:
    try:
        if name in {"max_workers", "batch_size", "max_attempts"}:
            return int(raw)
        if name == "request_timeout":
            return float(raw)
        if name in {"sync_time", "registry_refresh_time"}:
            return parse_time(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from exc
    if name == "base_currency":
        return raw.strip().upper()
    return raw.strip()


__all__ = ["CURRENCY_CODE_PATTERN", "DEFAULT_API_BASE_URL", "ENV_PREFIX", "Settings"]
