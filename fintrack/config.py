import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    seed_path: str = "data/seed.json"
    report_months: int = 6       # trailing window for monthly rollups
    currency: str = "USD"
    log_level: str = "INFO"
    due_soon_days: int = 3       # subscription reminder horizon


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Read settings from the environment, loading ``.env`` first if present."""
    load_dotenv(env_file)
    defaults = Settings()
    return Settings(
        seed_path=os.getenv("FINTRACK_SEED_PATH", defaults.seed_path),
        report_months=_int_env("FINTRACK_REPORT_MONTHS", defaults.report_months),
        currency=os.getenv("FINTRACK_CURRENCY", defaults.currency),
        log_level=os.getenv("FINTRACK_LOG_LEVEL", defaults.log_level),
        due_soon_days=_int_env("FINTRACK_DUE_SOON_DAYS", defaults.due_soon_days),
    )
