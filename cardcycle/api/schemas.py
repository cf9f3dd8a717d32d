from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from cardcycle.scheduling.buckets import BucketEntry
from cardcycle.scheduling.dashboard import Dashboard
from cardcycle.scheduling.records import ReviewRecord
from cardcycle.scheduling.stats import StudyStats


class ReviewCompleteRequest(BaseModel):
    """Request body for completing a single review."""

    card_id: int
    outcome: str = Field(
        ...,
        description="Self-reported recall quality, e.g. 'hard', 'confuse' or 'easy'",
    )


class ReviewBatchItem(BaseModel):
    card_id: int
    outcome: str


class ReviewBatchRequest(BaseModel):
    """Request body for completing several reviews at the end of a session."""

    reviews: List[ReviewBatchItem] = Field(..., min_length=1, max_length=200)


class ScheduleResult(BaseModel):
    """Updated schedule for one card after a completed review."""

    card_id: int
    outcome: Optional[str] = None
    interval_days: int
    repetitions: int
    total_reviews: int
    due_at: dt.datetime
    last_reviewed_at: Optional[dt.datetime] = None

    @classmethod
    def from_record(cls, record: ReviewRecord) -> "ScheduleResult":
        return cls(
            card_id=record.card_id,
            outcome=record.last_outcome.value if record.last_outcome else None,
            interval_days=record.interval_days,
            repetitions=record.repetitions,
            total_reviews=record.total_reviews,
            due_at=record.due_at,
            last_reviewed_at=record.last_reviewed_at,
        )


class ReviewBatchResponse(BaseModel):
    results: List[ScheduleResult] = Field(default_factory=list)
    completed_count: int = 0


class SessionCardsResponse(BaseModel):
    """Cards due now, earliest first."""

    cards: List[ScheduleResult] = Field(default_factory=list)
    due_count: int = 0


class DueCard(BaseModel):
    card_id: int
    due_at: dt.datetime
    interval_days: int
    total_reviews: int
    last_outcome: Optional[str] = None
    days_overdue: int = Field(
        default=0,
        description="Calendar days since the due date; negative for upcoming cards",
    )

    @classmethod
    def from_entry(cls, entry: BucketEntry) -> "DueCard":
        record = entry.record
        return cls(
            card_id=record.card_id,
            due_at=record.due_at,
            interval_days=record.interval_days,
            total_reviews=record.total_reviews,
            last_outcome=record.last_outcome.value if record.last_outcome else None,
            days_overdue=entry.days_overdue,
        )


class DueBucketsResponse(BaseModel):
    overdue: List[DueCard] = Field(default_factory=list)
    yesterday: List[DueCard] = Field(default_factory=list)
    today: List[DueCard] = Field(default_factory=list)
    tomorrow: List[DueCard] = Field(default_factory=list)
    within3days: List[DueCard] = Field(default_factory=list)
    within5days: List[DueCard] = Field(default_factory=list)


class StudyStatsResponse(BaseModel):
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

    @classmethod
    def from_stats(cls, stats: StudyStats) -> "StudyStatsResponse":
        return cls(
            overdue_count=stats.overdue_count,
            yesterday_count=stats.yesterday_count,
            today_count=stats.today_count,
            tomorrow_count=stats.tomorrow_count,
            within3days_count=stats.within3days_count,
            within5days_count=stats.within5days_count,
            total_active_cards=stats.total_active_cards,
            completed_today_count=stats.completed_today_count,
            current_streak=stats.current_streak,
            study_days_this_week=stats.study_days_this_week,
        )


class RecommendationResponse(BaseModel):
    message: str
    should_study_today: bool


class DashboardResponse(BaseModel):
    """Response body for the study-cycle dashboard."""

    buckets: DueBucketsResponse
    stats: StudyStatsResponse
    recommendation: RecommendationResponse
    generated_at: dt.datetime

    @classmethod
    def from_dashboard(
        cls,
        dashboard: Dashboard,
        entries: dict,
    ) -> "DashboardResponse":
        return cls(
            buckets=DueBucketsResponse(
                **{
                    name: [DueCard.from_entry(entry) for entry in bucket_entries]
                    for name, bucket_entries in entries.items()
                }
            ),
            stats=StudyStatsResponse.from_stats(dashboard.stats),
            recommendation=RecommendationResponse(
                message=dashboard.recommendation.message,
                should_study_today=dashboard.recommendation.should_study_today,
            ),
            generated_at=dashboard.generated_at,
        )
