from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from cardcycle.config import SchedulerConfig
from cardcycle.scheduling.errors import CardNotFound, ConcurrentModification, MemberNotFound
from cardcycle.scheduling.policy import IntervalPolicy, Outcome, OutcomeLabel, parse_outcome
from cardcycle.scheduling.records import Found, ReviewRecord, as_aware
from cardcycle.scheduling.store import (
    ActivityLog,
    CardDirectory,
    MemberDirectory,
    ReviewRecordStore,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewSubmission:
    """One card's outcome inside a batch completion."""

    card_id: int
    outcome: OutcomeLabel


class ReviewCompletionHandler:
    """
    Apply a review outcome to the member's record for a card.

    Each call performs exactly one successful conditional upsert. If another
    writer bumps the record version between our read and write, the review
    is re-applied on top of the fresh record, up to `max_completion_retries`
    attempts.

    The record save and the activity entry are written through separate
    collaborators. With the SQL adapters both go through the caller's
    session and are committed together, so a failed log write is rolled
    back along with the save. The in-memory adapters have no transaction
    and make no such guarantee.
    """

    def __init__(
        self,
        *,
        store: ReviewRecordStore,
        members: MemberDirectory,
        cards: CardDirectory,
        activity_log: ActivityLog,
        config: Optional[SchedulerConfig] = None,
        policy: Optional[IntervalPolicy] = None,
    ) -> None:
        self.store = store
        self.members = members
        self.cards = cards
        self.activity_log = activity_log
        self.config = config or SchedulerConfig()
        self.policy = policy or IntervalPolicy(self.config)

    async def _check_member(self, member_id: int) -> None:
        if not await self.members.member_exists(member_id):
            raise MemberNotFound(member_id)

    async def _check_card(self, member_id: int, card_id: int) -> None:
        # Foreign cards are reported as missing rather than forbidden.
        if not await self.cards.card_exists(card_id):
            raise CardNotFound(card_id)
        if not await self.cards.card_owned_by(card_id, member_id):
            raise CardNotFound(card_id)

    async def complete_review(
        self,
        member_id: int,
        card_id: int,
        outcome: OutcomeLabel,
        now: Optional[dt.datetime] = None,
    ) -> ReviewRecord:
        now = as_aware(now or dt.datetime.now(dt.timezone.utc))

        await self._check_member(member_id)
        await self._check_card(member_id, card_id)
        parsed = parse_outcome(outcome)

        return await self._apply(member_id, card_id, parsed, now)

    async def complete_batch(
        self,
        member_id: int,
        reviews: Sequence[ReviewSubmission],
        now: Optional[dt.datetime] = None,
    ) -> List[ReviewRecord]:
        """
        Complete several reviews at once, e.g. at the end of a study session.

        Every outcome and card is validated before the first write, so an
        invalid entry rejects the whole batch.
        """
        now = as_aware(now or dt.datetime.now(dt.timezone.utc))

        await self._check_member(member_id)
        parsed = []
        for review in reviews:
            await self._check_card(member_id, review.card_id)
            parsed.append((review.card_id, parse_outcome(review.outcome)))

        updated: List[ReviewRecord] = []
        for card_id, outcome in parsed:
            updated.append(await self._apply(member_id, card_id, outcome, now))
        logger.info("Review batch completed: member_id=%s, review_count=%s", member_id, len(updated))
        return updated

    async def _apply(
        self,
        member_id: int,
        card_id: int,
        outcome: Outcome,
        now: dt.datetime,
    ) -> ReviewRecord:
        attempts = max(1, self.config.max_completion_retries)
        for attempt in range(1, attempts + 1):
            lookup = await self.store.get(member_id, card_id)
            if isinstance(lookup, Found):
                current = lookup.record
            else:
                current = ReviewRecord.fresh(
                    member_id=member_id,
                    card_id=card_id,
                    now=now,
                    first_interval_days=self.policy.first_interval_days,
                )

            decision = self.policy.schedule(outcome, current.repetitions)
            try:
                saved = await self.store.save(current.apply(decision, now), current.version)
            except ConcurrentModification:
                logger.warning(
                    "Review record conflict: member_id=%s, card_id=%s, attempt=%s/%s",
                    member_id,
                    card_id,
                    attempt,
                    attempts,
                )
                continue

            await self.activity_log.record_completion(member_id, card_id, decision.outcome, now)
            logger.info(
                "Review completed: member_id=%s, card_id=%s, outcome=%s, interval_days=%s",
                member_id,
                card_id,
                decision.outcome.value,
                saved.interval_days,
            )
            return saved

        raise ConcurrentModification(member_id, card_id)


class ReviewQueue:
    """Read-side helper listing the cards a member should study right now."""

    def __init__(self, store: ReviewRecordStore) -> None:
        self.store = store

    async def session_cards(
        self,
        member_id: int,
        now: Optional[dt.datetime] = None,
        limit: Optional[int] = None,
    ) -> List[ReviewRecord]:
        """Records due at or before `now`, earliest first."""
        now = as_aware(now or dt.datetime.now(dt.timezone.utc))
        due = await self.store.list_for_member(member_id, due_before=now)
        if limit is not None and limit > 0:
            return due[:limit]
        return due
