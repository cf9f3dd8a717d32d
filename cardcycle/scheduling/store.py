"""
Persistence interfaces for review scheduling, plus in-memory adapters.

The in-memory adapters back the unit tests and can serve a single-process
deployment; `sql_store` provides the SQLAlchemy equivalents.
"""

from __future__ import annotations

import asyncio
import datetime as dt
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple, runtime_checkable

from cardcycle.scheduling.errors import ConcurrentModification
from cardcycle.scheduling.policy import Outcome
from cardcycle.scheduling.records import Found, LookupResult, Missing, ReviewRecord, as_aware


@runtime_checkable
class ReviewRecordStore(Protocol):
    async def get(self, member_id: int, card_id: int) -> LookupResult:
        ...

    async def save(self, record: ReviewRecord, expected_version: int) -> ReviewRecord:
        """
        Insert or update `record` if the stored version equals `expected_version`.

        `expected_version` is 0 when the caller saw no record. Returns the
        stored record with its new version; raises ConcurrentModification
        when the stored version differs.
        """
        ...

    async def list_for_member(
        self,
        member_id: int,
        due_before: Optional[dt.datetime] = None,
    ) -> List[ReviewRecord]:
        """Records for a member ordered by due_at, optionally with due_at <= due_before."""
        ...


@runtime_checkable
class MemberDirectory(Protocol):
    async def member_exists(self, member_id: int) -> bool:
        ...


@runtime_checkable
class CardDirectory(Protocol):
    async def card_exists(self, card_id: int) -> bool:
        ...

    async def card_owned_by(self, card_id: int, member_id: int) -> bool:
        ...


@runtime_checkable
class ActivityLog(Protocol):
    async def record_completion(
        self,
        member_id: int,
        card_id: int,
        outcome: Outcome,
        now: dt.datetime,
    ) -> None:
        ...

    async def count_completions_on(self, member_id: int, day: dt.date) -> int:
        ...

    async def distinct_activity_dates(
        self,
        member_id: int,
        start: dt.date,
        end: dt.date,
    ) -> List[dt.date]:
        """Sorted calendar days in [start, end] with at least one completion."""
        ...


def _sort_key(record: ReviewRecord) -> Tuple[dt.datetime, int]:
    return as_aware(record.due_at), record.card_id


class InMemoryReviewStore:
    """Dict-backed ReviewRecordStore keyed by (member_id, card_id)."""

    def __init__(self, records: Optional[Iterable[ReviewRecord]] = None) -> None:
        self._records: Dict[Tuple[int, int], ReviewRecord] = {}
        self._lock = asyncio.Lock()
        for record in records or []:
            self._records[(record.member_id, record.card_id)] = record

    async def get(self, member_id: int, card_id: int) -> LookupResult:
        record = self._records.get((member_id, card_id))
        if record is None:
            return Missing(member_id=member_id, card_id=card_id)
        return Found(record=record)

    async def save(self, record: ReviewRecord, expected_version: int) -> ReviewRecord:
        key = (record.member_id, record.card_id)
        async with self._lock:
            current = self._records.get(key)
            current_version = current.version if current is not None else 0
            if current_version != expected_version:
                raise ConcurrentModification(record.member_id, record.card_id)
            stored = replace(record, version=current_version + 1)
            self._records[key] = stored
            return stored

    async def list_for_member(
        self,
        member_id: int,
        due_before: Optional[dt.datetime] = None,
    ) -> List[ReviewRecord]:
        if due_before is not None:
            due_before = as_aware(due_before)
        records = [
            record
            for (owner, _), record in self._records.items()
            if owner == member_id and (due_before is None or as_aware(record.due_at) <= due_before)
        ]
        return sorted(records, key=_sort_key)


class InMemoryCatalog:
    """MemberDirectory and CardDirectory over plain collections."""

    def __init__(
        self,
        *,
        members: Optional[Iterable[int]] = None,
        card_owners: Optional[Dict[int, int]] = None,
    ) -> None:
        self.members: Set[int] = set(members or [])
        # card_id -> owning member_id
        self.card_owners: Dict[int, int] = dict(card_owners or {})

    def add_card(self, card_id: int, member_id: int) -> None:
        self.members.add(member_id)
        self.card_owners[card_id] = member_id

    async def member_exists(self, member_id: int) -> bool:
        return member_id in self.members

    async def card_exists(self, card_id: int) -> bool:
        return card_id in self.card_owners

    async def card_owned_by(self, card_id: int, member_id: int) -> bool:
        return self.card_owners.get(card_id) == member_id


@dataclass
class ActivityEntry:
    member_id: int
    card_id: int
    outcome: Outcome
    completed_at: dt.datetime


class InMemoryActivityLog:
    """Append-only completion log; calendar days are taken in `tz`."""

    def __init__(self, tz: Optional[dt.tzinfo] = None) -> None:
        self.tz = tz or dt.timezone.utc
        self.entries: List[ActivityEntry] = []

    def _local_date(self, when: dt.datetime) -> dt.date:
        return as_aware(when).astimezone(self.tz).date()

    async def record_completion(
        self,
        member_id: int,
        card_id: int,
        outcome: Outcome,
        now: dt.datetime,
    ) -> None:
        self.entries.append(
            ActivityEntry(
                member_id=member_id,
                card_id=card_id,
                outcome=outcome,
                completed_at=as_aware(now),
            )
        )

    async def count_completions_on(self, member_id: int, day: dt.date) -> int:
        return sum(
            1
            for entry in self.entries
            if entry.member_id == member_id and self._local_date(entry.completed_at) == day
        )

    async def distinct_activity_dates(
        self,
        member_id: int,
        start: dt.date,
        end: dt.date,
    ) -> List[dt.date]:
        days = {
            self._local_date(entry.completed_at)
            for entry in self.entries
            if entry.member_id == member_id
        }
        return sorted(day for day in days if start <= day <= end)
