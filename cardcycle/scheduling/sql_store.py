"""
SQLAlchemy adapters for the scheduling store interfaces.

All adapters share the caller's AsyncSession and never commit; the caller
owns the unit of work (API routes commit once per request).
"""

from __future__ import annotations

import datetime as dt
from dataclasses import replace
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cardcycle.db.models import Card, CardReview, Deck, Member, ReviewActivity
from cardcycle.scheduling.errors import ConcurrentModification
from cardcycle.scheduling.policy import Outcome
from cardcycle.scheduling.records import Found, LookupResult, Missing, ReviewRecord


def _as_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def _to_record(row: CardReview) -> ReviewRecord:
    return ReviewRecord(
        member_id=row.member_id,
        card_id=row.card_id,
        due_at=_as_utc(row.due_at),  # type: ignore[arg-type]
        interval_days=row.interval_days,
        created_at=_as_utc(row.created_at),  # type: ignore[arg-type]
        last_reviewed_at=_as_utc(row.last_reviewed_at),
        last_outcome=Outcome(row.last_outcome) if row.last_outcome else None,
        total_reviews=row.total_reviews,
        repetitions=row.repetitions,
        version=row.version,
    )


def _row_values(record: ReviewRecord) -> dict:
    return {
        "due_at": _as_utc(record.due_at),
        "interval_days": record.interval_days,
        "repetitions": record.repetitions,
        "last_reviewed_at": _as_utc(record.last_reviewed_at),
        "last_outcome": record.last_outcome.value if record.last_outcome else None,
        "total_reviews": record.total_reviews,
        "updated_at": dt.datetime.now(dt.timezone.utc),
    }


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert

        return insert
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert

        return insert
    return None


class SqlReviewStore:
    """ReviewRecordStore over the `review_records` table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, member_id: int, card_id: int) -> LookupResult:
        result = await self.db.execute(
            select(CardReview).where(
                CardReview.member_id == member_id,
                CardReview.card_id == card_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            return Missing(member_id=member_id, card_id=card_id)
        return Found(record=_to_record(row))

    async def save(self, record: ReviewRecord, expected_version: int) -> ReviewRecord:
        if expected_version == 0:
            await self._insert(record)
            return replace(record, version=1)

        result = await self.db.execute(
            update(CardReview)
            .where(
                CardReview.member_id == record.member_id,
                CardReview.card_id == record.card_id,
                CardReview.version == expected_version,
            )
            .values(version=expected_version + 1, **_row_values(record))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrentModification(record.member_id, record.card_id)
        return replace(record, version=expected_version + 1)

    async def _insert(self, record: ReviewRecord) -> None:
        values = {
            "member_id": record.member_id,
            "card_id": record.card_id,
            "created_at": _as_utc(record.created_at),
            "version": 1,
            **_row_values(record),
        }
        insert = _insert_for(self.db.get_bind().dialect.name)
        if insert is not None:
            # A concurrent first review wins the unique key; we see 0 rows.
            stmt = insert(CardReview).values(**values).on_conflict_do_nothing(
                index_elements=["member_id", "card_id"]
            )
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                raise ConcurrentModification(record.member_id, record.card_id)
            return

        # Only the savepoint is discarded on a conflict; earlier writes on the
        # session stay pending for the caller's commit.
        try:
            async with self.db.begin_nested():
                self.db.add(CardReview(**values))
        except IntegrityError:
            raise ConcurrentModification(record.member_id, record.card_id) from None

    async def list_for_member(
        self,
        member_id: int,
        due_before: Optional[dt.datetime] = None,
    ) -> List[ReviewRecord]:
        query = select(CardReview).where(CardReview.member_id == member_id)
        if due_before is not None:
            query = query.where(CardReview.due_at <= _as_utc(due_before))
        query = query.order_by(CardReview.due_at, CardReview.card_id)
        result = await self.db.execute(query)
        return [_to_record(row) for row in result.scalars().all()]


class SqlCatalog:
    """MemberDirectory and CardDirectory backed by members/decks/cards."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def member_exists(self, member_id: int) -> bool:
        result = await self.db.execute(
            select(Member.id).where(Member.id == member_id, Member.is_active.is_(True))
        )
        return result.scalar_one_or_none() is not None

    def _live_card(self, card_id: int):
        return (
            select(Card.id)
            .join(Deck, Card.deck_id == Deck.id)
            .where(
                Card.id == card_id,
                Card.is_deleted.is_(False),
                Deck.is_deleted.is_(False),
            )
        )

    async def card_exists(self, card_id: int) -> bool:
        result = await self.db.execute(self._live_card(card_id))
        return result.scalar_one_or_none() is not None

    async def card_owned_by(self, card_id: int, member_id: int) -> bool:
        result = await self.db.execute(
            self._live_card(card_id).where(Deck.member_id == member_id)
        )
        return result.scalar_one_or_none() is not None


class SqlActivityLog:
    """ActivityLog over `review_activities`; calendar days are taken in `tz`."""

    def __init__(self, db: AsyncSession, tz: Optional[dt.tzinfo] = None) -> None:
        self.db = db
        self.tz = tz or dt.timezone.utc

    def _day_start(self, day: dt.date) -> dt.datetime:
        return dt.datetime.combine(day, dt.time.min, tzinfo=self.tz).astimezone(dt.timezone.utc)

    async def record_completion(
        self,
        member_id: int,
        card_id: int,
        outcome: Outcome,
        now: dt.datetime,
    ) -> None:
        self.db.add(
            ReviewActivity(
                member_id=member_id,
                card_id=card_id,
                outcome=outcome.value,
                completed_at=_as_utc(now),
            )
        )

    async def count_completions_on(self, member_id: int, day: dt.date) -> int:
        result = await self.db.execute(
            select(func.count(ReviewActivity.id)).where(
                ReviewActivity.member_id == member_id,
                ReviewActivity.completed_at >= self._day_start(day),
                ReviewActivity.completed_at < self._day_start(day + dt.timedelta(days=1)),
            )
        )
        return int(result.scalar_one())

    async def distinct_activity_dates(
        self,
        member_id: int,
        start: dt.date,
        end: dt.date,
    ) -> List[dt.date]:
        result = await self.db.execute(
            select(ReviewActivity.completed_at).where(
                ReviewActivity.member_id == member_id,
                ReviewActivity.completed_at >= self._day_start(start),
                ReviewActivity.completed_at < self._day_start(end + dt.timedelta(days=1)),
            )
        )
        days = {
            _as_utc(completed_at).astimezone(self.tz).date()  # type: ignore[union-attr]
            for completed_at in result.scalars().all()
        }
        return sorted(days)
