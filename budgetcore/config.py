"""Environment-driven settings shared by the CLI and the HTTP API."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

DEFAULT_DATA_DIR = Path("data")
DEFAULT_CURRENCY_SYMBOL = "₹"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class Settings:
    data_dir: Path = DEFAULT_DATA_DIR
    env: str = "prod"
    allowed_origins: List[str] = field(default_factory=list)
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def is_development(self) -> bool:
        return self.env in {"dev", "development"}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        origins = env.get("BUDGET_TRACKER_ALLOWED_ORIGINS", "")
        return cls(
            data_dir=Path(env.get("BUDGET_TRACKER_DATA_DIR") or DEFAULT_DATA_DIR),
            env=(env.get("BUDGET_TRACKER_ENV") or "prod").lower(),
            allowed_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
            currency_symbol=env.get("BUDGET_TRACKER_CURRENCY_SYMBOL") or DEFAULT_CURRENCY_SYMBOL,
            log_level=(env.get("BUDGET_TRACKER_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )
