from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Optional

from cardcycle.config import SchedulerConfig
from cardcycle.scheduling.buckets import DueBucketClassifier, DueBuckets
from cardcycle.scheduling.errors import MemberNotFound
from cardcycle.scheduling.recommendation import Recommendation, recommend
from cardcycle.scheduling.records import as_aware
from cardcycle.scheduling.stats import StatsAggregator, StudyStats
from cardcycle.scheduling.store import ActivityLog, MemberDirectory, ReviewRecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dashboard:
    buckets: DueBuckets
    stats: StudyStats
    recommendation: Recommendation
    generated_at: dt.datetime


class DashboardService:
    """
    Read-side composition of the classifier, aggregator and recommendation.

    Nothing is materialised; every call classifies the member's records
    and reads the activity log at query time.
    """

    def __init__(
        self,
        *,
        store: ReviewRecordStore,
        members: MemberDirectory,
        activity_log: ActivityLog,
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        self.members = members
        self.config = config or SchedulerConfig()
        self.classifier = DueBucketClassifier(store, self.config)
        self.aggregator = StatsAggregator(activity_log, self.config)

    async def get_stats(self, member_id: int, now: Optional[dt.datetime] = None) -> StudyStats:
        dashboard = await self.get_dashboard(member_id, now)
        return dashboard.stats

    async def get_dashboard(self, member_id: int, now: Optional[dt.datetime] = None) -> Dashboard:
        now = as_aware(now or dt.datetime.now(dt.timezone.utc))
        if not await self.members.member_exists(member_id):
            raise MemberNotFound(member_id)

        buckets = await self.classifier.classify(member_id, now)
        stats = self.aggregator.aggregate(
            buckets,
            completed_today=await self.aggregator.completed_today(member_id, now),
            current_streak=await self.aggregator.current_streak(member_id, now),
            study_days_this_week=await self.aggregator.study_days_this_week(member_id, now),
        )
        recommendation = recommend(stats, self.config)

        logger.debug(
            "Dashboard built: member_id=%s, pending=%s, streak=%s",
            member_id,
            stats.pending_count,
            stats.current_streak,
        )
        return Dashboard(
            buckets=buckets,
            stats=stats,
            recommendation=recommendation,
            generated_at=now,
        )
