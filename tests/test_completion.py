from __future__ import annotations

import datetime as dt
from typing import Optional

import pytest

from cardcycle.config import SchedulerConfig
from cardcycle.scheduling.completion import ReviewCompletionHandler, ReviewQueue, ReviewSubmission
from cardcycle.scheduling.errors import (
    CardNotFound,
    ConcurrentModification,
    MemberNotFound,
    UnrecognizedOutcome,
)
from cardcycle.scheduling.policy import IntervalPolicy, Outcome
from cardcycle.scheduling.records import Found, ReviewRecord
from cardcycle.scheduling.store import InMemoryActivityLog, InMemoryCatalog, InMemoryReviewStore

NOW = dt.datetime(2024, 1, 1, 0, 0, tzinfo=dt.timezone.utc)


class _RacingStore(InMemoryReviewStore):
    """Lets another writer complete a review right before each of our first `races` saves."""

    def __init__(self, races: int) -> None:
        super().__init__()
        self.races = races

    async def save(self, record: ReviewRecord, expected_version: int) -> ReviewRecord:
        if self.races > 0:
            self.races -= 1
            lookup = await self.get(record.member_id, record.card_id)
            if isinstance(lookup, Found):
                current = lookup.record
            else:
                current = ReviewRecord.fresh(member_id=record.member_id, card_id=record.card_id, now=NOW)
            decision = IntervalPolicy().schedule(Outcome.HARD, current.repetitions)
            await super().save(current.apply(decision, NOW), current.version)
        return await super().save(record, expected_version)


def _make_handler(
    store: Optional[InMemoryReviewStore] = None,
    config: Optional[SchedulerConfig] = None,
):
    catalog = InMemoryCatalog(members=[1, 2])
    catalog.add_card(10, 1)
    catalog.add_card(11, 1)
    catalog.add_card(20, 2)
    store = store or InMemoryReviewStore()
    log = InMemoryActivityLog()
    handler = ReviewCompletionHandler(
        store=store,
        members=catalog,
        cards=catalog,
        activity_log=log,
        config=config,
    )
    return handler, store, log


@pytest.mark.anyio
async def test_first_easy_review_of_new_card():
    handler, store, log = _make_handler()

    record = await handler.complete_review(1, 10, "EASY", now=NOW)

    assert record.interval_days == 7
    assert record.due_at == dt.datetime(2024, 1, 8, 0, 0, tzinfo=dt.timezone.utc)
    assert record.total_reviews == 1
    assert record.repetitions == 1
    assert record.last_reviewed_at == NOW
    assert record.last_outcome is Outcome.EASY
    assert record.version == 1
    assert len(log.entries) == 1
    assert log.entries[0].outcome is Outcome.EASY


@pytest.mark.anyio
async def test_hard_review_resets_repetitions():
    handler, store, _ = _make_handler()
    for _ in range(3):
        await handler.complete_review(1, 10, Outcome.EASY, now=NOW)

    after_hard = await handler.complete_review(1, 10, Outcome.HARD, now=NOW)
    after_confuse = await handler.complete_review(1, 10, Outcome.CONFUSE, now=NOW)

    assert after_hard.interval_days == 1
    assert after_hard.repetitions == 0
    assert after_hard.total_reviews == 4
    # Next computation starts again from zero repetitions.
    assert after_confuse.interval_days == 3
    assert after_confuse.repetitions == 1
    assert after_confuse.total_reviews == 5


@pytest.mark.anyio
async def test_unknown_member_is_rejected():
    handler, _, _ = _make_handler()

    with pytest.raises(MemberNotFound):
        await handler.complete_review(99, 10, "easy", now=NOW)


@pytest.mark.anyio
async def test_unknown_and_foreign_cards_are_rejected_without_writes():
    handler, store, log = _make_handler()

    with pytest.raises(CardNotFound):
        await handler.complete_review(1, 999, "easy", now=NOW)
    with pytest.raises(CardNotFound):
        await handler.complete_review(1, 20, "easy", now=NOW)

    assert await store.list_for_member(1) == []
    assert log.entries == []


@pytest.mark.anyio
async def test_unrecognized_outcome_leaves_record_unchanged():
    handler, store, log = _make_handler()
    before = await handler.complete_review(1, 10, "confuse", now=NOW)

    with pytest.raises(UnrecognizedOutcome):
        await handler.complete_review(1, 10, "banana", now=NOW + dt.timedelta(days=3))

    lookup = await store.get(1, 10)
    assert isinstance(lookup, Found)
    assert lookup.record == before
    assert len(log.entries) == 1


@pytest.mark.anyio
async def test_conflicting_write_is_retried_on_fresh_record():
    handler, store, log = _make_handler(_RacingStore(races=1))

    record = await handler.complete_review(1, 10, "easy", now=NOW)

    # The concurrent HARD review is kept and ours is applied on top of it.
    assert record.total_reviews == 2
    assert record.version == 2
    assert record.last_outcome is Outcome.EASY
    assert len(log.entries) == 1


@pytest.mark.anyio
async def test_conflicts_beyond_retry_budget_raise():
    config = SchedulerConfig(max_completion_retries=2)
    handler, store, log = _make_handler(_RacingStore(races=5), config=config)

    with pytest.raises(ConcurrentModification):
        await handler.complete_review(1, 10, "easy", now=NOW)

    assert log.entries == []


@pytest.mark.anyio
async def test_batch_completion_applies_every_review():
    handler, store, log = _make_handler()

    records = await handler.complete_batch(
        1,
        [ReviewSubmission(10, "easy"), ReviewSubmission(11, "hard")],
        now=NOW,
    )

    assert [(r.card_id, r.interval_days) for r in records] == [(10, 7), (11, 1)]
    assert len(log.entries) == 2


@pytest.mark.anyio
async def test_batch_with_invalid_entry_writes_nothing():
    handler, store, log = _make_handler()

    with pytest.raises(UnrecognizedOutcome):
        await handler.complete_batch(
            1,
            [ReviewSubmission(10, "easy"), ReviewSubmission(11, "meh")],
            now=NOW,
        )
    with pytest.raises(CardNotFound):
        await handler.complete_batch(
            1,
            [ReviewSubmission(10, "easy"), ReviewSubmission(20, "easy")],
            now=NOW,
        )

    assert await store.list_for_member(1) == []
    assert log.entries == []


@pytest.mark.anyio
async def test_session_cards_lists_due_records_first_due_first():
    handler, store, _ = _make_handler()
    await handler.complete_review(1, 10, "easy", now=NOW)
    await handler.complete_review(1, 11, "hard", now=NOW)
    queue = ReviewQueue(store)

    due_now = await queue.session_cards(1, now=NOW + dt.timedelta(days=1))
    due_later = await queue.session_cards(1, now=NOW + dt.timedelta(days=8))
    limited = await queue.session_cards(1, now=NOW + dt.timedelta(days=8), limit=1)

    assert [r.card_id for r in due_now] == [11]
    assert [r.card_id for r in due_later] == [11, 10]
    assert [r.card_id for r in limited] == [11]
