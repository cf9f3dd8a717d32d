from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, replace
from typing import Optional, Union

from cardcycle.scheduling.policy import IntervalDecision, Outcome


def as_aware(value: dt.datetime) -> dt.datetime:
    """Return `value` unchanged if it carries a timezone, otherwise read it as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


@dataclass(frozen=True)
class ReviewRecord:
    """
    Scheduling state for one (member, card) pair.

    `version` is 0 until the record has been persisted; stores bump it on
    every successful write and use it for optimistic locking.
    """

    member_id: int
    card_id: int
    due_at: dt.datetime
    interval_days: int
    created_at: dt.datetime
    last_reviewed_at: Optional[dt.datetime] = None
    last_outcome: Optional[Outcome] = None
    total_reviews: int = 0
    repetitions: int = 0
    version: int = 0

    @property
    def is_new(self) -> bool:
        return self.total_reviews == 0

    @classmethod
    def fresh(
        cls,
        *,
        member_id: int,
        card_id: int,
        now: dt.datetime,
        first_interval_days: int = 1,
    ) -> "ReviewRecord":
        """A never-reviewed record, due one first interval after creation."""
        return cls(
            member_id=member_id,
            card_id=card_id,
            due_at=now + dt.timedelta(days=first_interval_days),
            interval_days=first_interval_days,
            created_at=now,
        )

    def apply(self, decision: IntervalDecision, now: dt.datetime) -> "ReviewRecord":
        """Return a copy updated for a review completed at `now`."""
        return replace(
            self,
            interval_days=decision.interval_days,
            repetitions=decision.repetitions,
            last_outcome=decision.outcome,
            last_reviewed_at=now,
            due_at=now + dt.timedelta(days=decision.interval_days),
            total_reviews=self.total_reviews + 1,
        )


@dataclass(frozen=True)
class Found:
    record: ReviewRecord


@dataclass(frozen=True)
class Missing:
    member_id: int
    card_id: int


LookupResult = Union[Found, Missing]
