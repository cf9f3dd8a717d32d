"""
Configuration for the review scheduler.
"""

from __future__ import annotations

import datetime as dt
import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load .env file if it exists
project_root = Path(__file__).resolve().parents[1]
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass
class SchedulerConfig:
    """Tunables for interval policy, bucketing, streaks and recommendations."""

    # Calendar-day boundaries (today, tomorrow, ...) are evaluated in this zone.
    timezone: str = "UTC"
    streak_lookback_days: int = 30
    max_completion_retries: int = 3

    first_interval_days: int = 1
    hard_interval_days: int = 1
    confuse_min_days: int = 3
    easy_min_days: int = 7

    overdue_alert_threshold: int = 10
    heavy_load_threshold: int = 20

    def tz(self) -> dt.tzinfo:
        if self.timezone.upper() == "UTC":
            return dt.timezone.utc
        return ZoneInfo(self.timezone)

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        """Build a config from CARDCYCLE_* environment variables."""
        defaults = cls()
        return cls(
            timezone=os.getenv("CARDCYCLE_TIMEZONE", defaults.timezone),
            streak_lookback_days=_get_env_int(
                "CARDCYCLE_STREAK_LOOKBACK_DAYS", defaults.streak_lookback_days
            ),
            max_completion_retries=_get_env_int(
                "CARDCYCLE_MAX_COMPLETION_RETRIES", defaults.max_completion_retries
            ),
            first_interval_days=_get_env_int(
                "CARDCYCLE_FIRST_INTERVAL_DAYS", defaults.first_interval_days
            ),
            hard_interval_days=_get_env_int(
                "CARDCYCLE_HARD_INTERVAL_DAYS", defaults.hard_interval_days
            ),
            confuse_min_days=_get_env_int("CARDCYCLE_CONFUSE_MIN_DAYS", defaults.confuse_min_days),
            easy_min_days=_get_env_int("CARDCYCLE_EASY_MIN_DAYS", defaults.easy_min_days),
            overdue_alert_threshold=_get_env_int(
                "CARDCYCLE_OVERDUE_ALERT_THRESHOLD", defaults.overdue_alert_threshold
            ),
            heavy_load_threshold=_get_env_int(
                "CARDCYCLE_HEAVY_LOAD_THRESHOLD", defaults.heavy_load_threshold
            ),
        )
