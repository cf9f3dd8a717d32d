"""
Tests for the review scheduling endpoints.

Routes run against in-memory adapters through `app.dependency_overrides`,
so no database is required.
"""

from __future__ import annotations

import datetime as dt
from contextlib import contextmanager
from types import SimpleNamespace
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from cardcycle.api.deps import ReviewServices, get_review_services
from cardcycle.api.main import app
from cardcycle.config import SchedulerConfig
from cardcycle.scheduling.completion import ReviewCompletionHandler, ReviewQueue
from cardcycle.scheduling.dashboard import DashboardService
from cardcycle.scheduling.errors import ConcurrentModification
from cardcycle.scheduling.recommendation import ALL_CAUGHT_UP, START_NOW
from cardcycle.scheduling.records import ReviewRecord
from cardcycle.scheduling.store import InMemoryActivityLog, InMemoryCatalog, InMemoryReviewStore


class _CommitCounter:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1


class _AlwaysConflictingStore(InMemoryReviewStore):
    async def save(self, record: ReviewRecord, expected_version: int) -> ReviewRecord:
        raise ConcurrentModification(record.member_id, record.card_id)


def _make_services(store: InMemoryReviewStore) -> ReviewServices:
    catalog = InMemoryCatalog(members=[1, 2])
    catalog.add_card(10, 1)
    catalog.add_card(11, 1)
    catalog.add_card(20, 2)
    log = InMemoryActivityLog()
    return ReviewServices(
        completion=ReviewCompletionHandler(
            store=store,
            members=catalog,
            cards=catalog,
            activity_log=log,
        ),
        queue=ReviewQueue(store),
        dashboard=DashboardService(store=store, members=catalog, activity_log=log),
        commit=_CommitCounter(),
    )


def _make_record(card_id: int, due_at: dt.datetime) -> ReviewRecord:
    return ReviewRecord(
        member_id=1,
        card_id=card_id,
        due_at=due_at,
        interval_days=1,
        created_at=due_at - dt.timedelta(days=1),
        total_reviews=1,
        version=1,
    )


@contextmanager
def _client_for(store: InMemoryReviewStore, services: Optional[ReviewServices] = None):
    services = services or _make_services(store)
    app.dependency_overrides[get_review_services] = lambda: services
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def services() -> ReviewServices:
    return _make_services(InMemoryReviewStore())


@pytest.fixture
def client(services: ReviewServices) -> TestClient:
    with _client_for(services.queue.store, services) as test_client:
        yield test_client


def test_health(client: TestClient):
    r = client.get("/api/health")

    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_complete_review_returns_schedule_and_commits(client: TestClient, services: ReviewServices):
    r = client.post("/api/members/1/reviews", json={"card_id": 10, "outcome": "easy"})

    assert r.status_code == 200
    data = r.json()
    assert data["card_id"] == 10
    assert data["outcome"] == "easy"
    assert data["interval_days"] == 7
    assert data["total_reviews"] == 1
    assert services.commit.calls == 1


@pytest.mark.parametrize(
    "member_id, payload, status_code",
    [
        (99, {"card_id": 10, "outcome": "easy"}, 404),
        (1, {"card_id": 999, "outcome": "easy"}, 404),
        (1, {"card_id": 20, "outcome": "easy"}, 404),
        (1, {"card_id": 10, "outcome": "banana"}, 400),
    ],
)
def test_complete_review_error_mapping(
    client: TestClient,
    services: ReviewServices,
    member_id: int,
    payload: dict,
    status_code: int,
):
    r = client.post(f"/api/members/{member_id}/reviews", json=payload)

    assert r.status_code == status_code
    assert services.commit.calls == 0


def test_concurrent_modification_maps_to_conflict():
    with _client_for(_AlwaysConflictingStore()) as client:
        r = client.post("/api/members/1/reviews", json={"card_id": 10, "outcome": "hard"})

    assert r.status_code == 409


def test_batch_review(client: TestClient):
    r = client.post(
        "/api/members/1/reviews/batch",
        json={
            "reviews": [
                {"card_id": 10, "outcome": "hard"},
                {"card_id": 11, "outcome": "헷갈림"},
            ]
        },
    )

    assert r.status_code == 200
    data = r.json()
    assert data["completed_count"] == 2
    assert [item["interval_days"] for item in data["results"]] == [1, 3]


def test_batch_review_rejects_empty_list(client: TestClient):
    r = client.post("/api/members/1/reviews/batch", json={"reviews": []})

    assert r.status_code == 422


def test_session_cards():
    now = dt.datetime.now(dt.timezone.utc)
    store = InMemoryReviewStore([_make_record(10, now - dt.timedelta(hours=1))])

    with _client_for(store) as client:
        r = client.get("/api/members/1/reviews/session-cards")
        r_missing = client.get("/api/members/99/reviews/session-cards")

    assert r.status_code == 200
    assert r.json()["due_count"] == 1
    assert r.json()["cards"][0]["card_id"] == 10
    assert r_missing.status_code == 404


def test_dashboard_for_member_without_reviews(client: TestClient):
    r = client.get("/api/members/1/dashboard")

    assert r.status_code == 200
    data = r.json()
    assert set(data["buckets"]) == {
        "overdue",
        "yesterday",
        "today",
        "tomorrow",
        "within3days",
        "within5days",
    }
    assert all(cards == [] for cards in data["buckets"].values())
    assert data["stats"]["total_active_cards"] == 0
    assert data["recommendation"] == {"message": ALL_CAUGHT_UP, "should_study_today": False}


def test_dashboard_after_reviews():
    now = dt.datetime.now(dt.timezone.utc)
    store = InMemoryReviewStore([_make_record(11, now)])

    with _client_for(store) as client:
        client.post("/api/members/1/reviews", json={"card_id": 10, "outcome": "hard"})
        r = client.get("/api/members/1/dashboard")
        r_stats = client.get("/api/members/1/dashboard/stats")

    assert r.status_code == 200
    data = r.json()
    assert [c["card_id"] for c in data["buckets"]["today"]] == [11]
    assert [c["card_id"] for c in data["buckets"]["tomorrow"]] == [10]
    assert data["buckets"]["tomorrow"][0]["days_overdue"] == -1
    assert data["stats"]["completed_today_count"] == 1
    assert data["stats"]["current_streak"] == 1
    assert data["recommendation"]["message"] == START_NOW
    assert r_stats.status_code == 200
    assert r_stats.json()["today_count"] == 1


def test_dashboard_unknown_member(client: TestClient):
    r = client.get("/api/members/99/dashboard")
    r_stats = client.get("/api/members/99/dashboard/stats")

    assert r.status_code == 404
    assert r_stats.status_code == 404


def _request_with_state(**state) -> SimpleNamespace:
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(**state)))


@pytest.mark.anyio
async def test_services_use_startup_config(monkeypatch):
    monkeypatch.setenv("CARDCYCLE_TIMEZONE", "UTC")
    request = _request_with_state(scheduler_config=SchedulerConfig(timezone="Asia/Seoul"))

    services = await get_review_services(request, SimpleNamespace(commit=_CommitCounter()))

    assert services.dashboard.config.timezone == "Asia/Seoul"
    assert services.completion.config.timezone == "Asia/Seoul"


@pytest.mark.anyio
async def test_services_fall_back_to_env_without_startup_config(monkeypatch):
    monkeypatch.setenv("CARDCYCLE_TIMEZONE", "Asia/Seoul")

    services = await get_review_services(_request_with_state(), SimpleNamespace(commit=_CommitCounter()))

    assert services.dashboard.config.timezone == "Asia/Seoul"
