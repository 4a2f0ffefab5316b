"""Runtime configuration for pnlkit.

Values come from environment variables so the CLI, tests and any embedding
application can share one source of defaults.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_CACHE_TTL_SECONDS = 60
DEFAULT_AMOUNT_TOLERANCE_PERCENT = Decimal("10")
DEFAULT_CURRENCY = "RON"
DEFAULT_LOG_LEVEL = "WARNING"


def default_database_path() -> Path:
    """Return ~/.pnlkit/pnlkit.db, creating the directory if needed."""
    db_dir = Path.home() / ".pnlkit"
    db_dir.mkdir(exist_ok=True)
    return db_dir / "pnlkit.db"


@dataclass(frozen=True)
class Settings:
    """Application settings."""

    database_path: Optional[str] = None
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    amount_tolerance_percent: Decimal = DEFAULT_AMOUNT_TOLERANCE_PERCENT
    default_currency: str = DEFAULT_CURRENCY
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings instance

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ

        ttl_raw = env.get("PNLKIT_CACHE_TTL")
        try:
            ttl = int(ttl_raw) if ttl_raw else DEFAULT_CACHE_TTL_SECONDS
        except ValueError:
            raise ValueError(f"PNLKIT_CACHE_TTL must be an integer, got '{ttl_raw}'")

        tolerance_raw = env.get("PNLKIT_AMOUNT_TOLERANCE")
        try:
            tolerance = (
                Decimal(tolerance_raw) if tolerance_raw else DEFAULT_AMOUNT_TOLERANCE_PERCENT
            )
        except InvalidOperation:
            raise ValueError(
                f"PNLKIT_AMOUNT_TOLERANCE must be a number, got '{tolerance_raw}'"
            )

        return cls(
            database_path=env.get("PNLKIT_DB_PATH") or None,
            cache_ttl_seconds=ttl,
            amount_tolerance_percent=tolerance,
            default_currency=env.get("PNLKIT_DEFAULT_CURRENCY") or DEFAULT_CURRENCY,
            log_level=(env.get("PNLKIT_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )
