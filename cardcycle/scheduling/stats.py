from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, Optional

from cardcycle.config import SchedulerConfig
from cardcycle.scheduling.buckets import DueBuckets
from cardcycle.scheduling.records import as_aware
from cardcycle.scheduling.store import ActivityLog


@dataclass(frozen=True)
class StudyStats:
    overdue_count: int = 0
    yesterday_count: int = 0
    today_count: int = 0
    tomorrow_count: int = 0
    within3days_count: int = 0
    within5days_count: int = 0
    total_active_cards: int = 0
    completed_today_count: int = 0
    current_streak: int = 0
    study_days_this_week: int = 0

    @property
    def pending_count(self) -> int:
        """Cards the member should review today (overdue plus due today)."""
        return self.overdue_count + self.today_count


def count_streak(dates: Iterable[dt.date], today: dt.date, lookback_days: int) -> int:
    """
    Count consecutive active days ending at `today`.

    The walk stops at the first day without activity or after
    `lookback_days` days, whichever comes first. No activity today
    means a streak of 0.
    """
    active = set(dates)
    streak = 0
    for offset in range(max(0, lookback_days)):
        if today - dt.timedelta(days=offset) not in active:
            break
        streak += 1
    return streak


class StatsAggregator:
    def __init__(
        self,
        activity_log: Optional[ActivityLog] = None,
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        self.activity_log = activity_log
        self.config = config or SchedulerConfig()
        self.tz = self.config.tz()

    def aggregate(
        self,
        buckets: DueBuckets,
        completed_today: int,
        current_streak: int = 0,
        study_days_this_week: int = 0,
    ) -> StudyStats:
        counts = buckets.counts()
        return StudyStats(
            overdue_count=counts["overdue"],
            yesterday_count=counts["yesterday"],
            today_count=counts["today"],
            tomorrow_count=counts["tomorrow"],
            within3days_count=counts["within3days"],
            within5days_count=counts["within5days"],
            # Overlapping buckets are counted once per bucket.
            total_active_cards=sum(counts.values()),
            completed_today_count=completed_today,
            current_streak=current_streak,
            study_days_this_week=study_days_this_week,
        )

    def _require_log(self) -> ActivityLog:
        if self.activity_log is None:
            raise RuntimeError("StatsAggregator needs an activity log for history queries")
        return self.activity_log

    def _local_today(self, now: Optional[dt.datetime]) -> dt.date:
        now = as_aware(now or dt.datetime.now(dt.timezone.utc))
        return now.astimezone(self.tz).date()

    async def completed_today(self, member_id: int, now: Optional[dt.datetime] = None) -> int:
        return await self._require_log().count_completions_on(member_id, self._local_today(now))

    async def current_streak(self, member_id: int, now: Optional[dt.datetime] = None) -> int:
        lookback = self.config.streak_lookback_days
        if lookback <= 0:
            return 0
        today = self._local_today(now)
        dates = await self._require_log().distinct_activity_dates(
            member_id,
            today - dt.timedelta(days=lookback - 1),
            today,
        )
        return count_streak(dates, today, lookback)

    async def study_days_this_week(self, member_id: int, now: Optional[dt.datetime] = None) -> int:
        """Distinct active days from Monday of the current week through today."""
        today = self._local_today(now)
        monday = today - dt.timedelta(days=today.weekday())
        dates = await self._require_log().distinct_activity_dates(member_id, monday, today)
        return len(dates)
