"""
Classification of a member's review records into dashboard buckets.

Day boundaries are calendar days in the configured reference timezone:
day k spans [midnight(today + k), midnight(today + k + 1)).

    overdue      due on day -3 or day -2
    yesterday    due on day -1
    today        due before the end of today and not overdue/yesterday
    tomorrow     due on day +1
    within3days  due after tomorrow and no later than now + 3 days
    within5days  due after tomorrow and no later than now + 5 days

within5days is a superset of within3days; both are reported.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from cardcycle.config import SchedulerConfig
from cardcycle.scheduling.records import ReviewRecord, as_aware
from cardcycle.scheduling.store import ReviewRecordStore

BUCKET_NAMES = ("overdue", "yesterday", "today", "tomorrow", "within3days", "within5days")

OUTLOOK_DAYS = 5


@dataclass
class DueBuckets:
    overdue: List[ReviewRecord] = field(default_factory=list)
    yesterday: List[ReviewRecord] = field(default_factory=list)
    today: List[ReviewRecord] = field(default_factory=list)
    tomorrow: List[ReviewRecord] = field(default_factory=list)
    within3days: List[ReviewRecord] = field(default_factory=list)
    within5days: List[ReviewRecord] = field(default_factory=list)

    def as_dict(self) -> Dict[str, List[ReviewRecord]]:
        return {name: list(getattr(self, name)) for name in BUCKET_NAMES}

    def counts(self) -> Dict[str, int]:
        return {name: len(getattr(self, name)) for name in BUCKET_NAMES}


@dataclass(frozen=True)
class BucketEntry:
    """A bucketed record with its lateness in calendar days (negative if upcoming)."""

    record: ReviewRecord
    bucket: str
    days_overdue: int


class DueBucketClassifier:
    def __init__(
        self,
        store: Optional[ReviewRecordStore] = None,
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        self.store = store
        self.config = config or SchedulerConfig()
        self.tz = self.config.tz()

    def _day_start(self, today: dt.date, offset: int) -> dt.datetime:
        return dt.datetime.combine(today + dt.timedelta(days=offset), dt.time.min, tzinfo=self.tz)

    def local_today(self, now: dt.datetime) -> dt.date:
        return as_aware(now).astimezone(self.tz).date()

    def partition(self, records: Iterable[ReviewRecord], now: dt.datetime) -> DueBuckets:
        """Pure bucket assignment for an in-memory collection of records."""
        now = as_aware(now)
        today = self.local_today(now)

        overdue_start = self._day_start(today, -3)
        yesterday_start = self._day_start(today, -1)
        today_start = self._day_start(today, 0)
        tomorrow_start = self._day_start(today, 1)
        after_tomorrow = self._day_start(today, 2)
        within3_end = now + dt.timedelta(days=3)
        within5_end = now + dt.timedelta(days=OUTLOOK_DAYS)

        buckets = DueBuckets()
        for record in sorted(records, key=lambda r: (as_aware(r.due_at), r.card_id)):
            due = as_aware(record.due_at)
            if due < tomorrow_start:
                if overdue_start <= due < yesterday_start:
                    buckets.overdue.append(record)
                elif yesterday_start <= due < today_start:
                    buckets.yesterday.append(record)
                else:
                    buckets.today.append(record)
            elif due < after_tomorrow:
                buckets.tomorrow.append(record)
            elif due <= within5_end:
                buckets.within5days.append(record)
                if due <= within3_end:
                    buckets.within3days.append(record)
        return buckets

    async def classify(self, member_id: int, now: Optional[dt.datetime] = None) -> DueBuckets:
        """Load the member's records due within the outlook window and bucket them."""
        if self.store is None:
            raise RuntimeError("DueBucketClassifier.classify requires a store")
        now = as_aware(now or dt.datetime.now(dt.timezone.utc))
        records = await self.store.list_for_member(
            member_id,
            due_before=now + dt.timedelta(days=OUTLOOK_DAYS),
        )
        return self.partition(records, now)

    def days_overdue(self, record: ReviewRecord, now: dt.datetime) -> int:
        due_day = as_aware(record.due_at).astimezone(self.tz).date()
        return (self.local_today(now) - due_day).days

    def entries(self, buckets: DueBuckets, now: dt.datetime) -> Dict[str, List[BucketEntry]]:
        return {
            name: [
                BucketEntry(record=record, bucket=name, days_overdue=self.days_overdue(record, now))
                for record in records
            ]
            for name, records in buckets.as_dict().items()
        }
