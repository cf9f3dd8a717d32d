from __future__ import annotations

from typing import Annotated, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from cardcycle.api.deps import ReviewServices, get_review_services
from cardcycle.api.schemas import (
    DashboardResponse,
    ReviewBatchRequest,
    ReviewBatchResponse,
    ReviewCompleteRequest,
    ScheduleResult,
    SessionCardsResponse,
    StudyStatsResponse,
)
from cardcycle.scheduling.completion import ReviewSubmission
from cardcycle.scheduling.errors import (
    CardNotFound,
    ConcurrentModification,
    MemberNotFound,
    SchedulingError,
    UnrecognizedOutcome,
)

router = APIRouter(prefix="/api/members/{member_id}", tags=["reviews"])

Services = Annotated[ReviewServices, Depends(get_review_services)]


def _raise_http(exc: SchedulingError) -> NoReturn:
    if isinstance(exc, MemberNotFound):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Member not found",
        ) from exc
    if isinstance(exc, CardNotFound):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Card not found",
        ) from exc
    if isinstance(exc, UnrecognizedOutcome):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    if isinstance(exc, ConcurrentModification):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Review was modified concurrently; please retry",
        ) from exc
    raise exc


@router.post("/reviews", response_model=ScheduleResult)
async def complete_review(
    member_id: int,
    payload: ReviewCompleteRequest,
    services: Services,
) -> ScheduleResult:
    """
    Record a completed review and return the card's next schedule.
    """
    try:
        record = await services.completion.complete_review(
            member_id,
            payload.card_id,
            payload.outcome,
        )
    except SchedulingError as exc:
        _raise_http(exc)
    await services.commit()
    return ScheduleResult.from_record(record)


@router.post("/reviews/batch", response_model=ReviewBatchResponse)
async def complete_review_batch(
    member_id: int,
    payload: ReviewBatchRequest,
    services: Services,
) -> ReviewBatchResponse:
    """
    Record several completed reviews at once; nothing is saved if any entry is invalid.
    """
    submissions = [
        ReviewSubmission(card_id=item.card_id, outcome=item.outcome)
        for item in payload.reviews
    ]
    try:
        records = await services.completion.complete_batch(member_id, submissions)
    except SchedulingError as exc:
        _raise_http(exc)
    await services.commit()
    return ReviewBatchResponse(
        results=[ScheduleResult.from_record(record) for record in records],
        completed_count=len(records),
    )


@router.get("/reviews/session-cards", response_model=SessionCardsResponse)
async def get_session_cards(
    member_id: int,
    services: Services,
    limit: Annotated[Optional[int], Query(ge=1, le=200)] = None,
) -> SessionCardsResponse:
    """
    Return the cards due for review right now, earliest first.
    """
    if not await services.dashboard.members.member_exists(member_id):
        _raise_http(MemberNotFound(member_id))
    records = await services.queue.session_cards(member_id, limit=limit)
    return SessionCardsResponse(
        cards=[ScheduleResult.from_record(record) for record in records],
        due_count=len(records),
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    member_id: int,
    services: Services,
) -> DashboardResponse:
    """
    Return bucketed due cards, study stats and today's recommendation.
    """
    try:
        dashboard = await services.dashboard.get_dashboard(member_id)
    except SchedulingError as exc:
        _raise_http(exc)
    entries = services.dashboard.classifier.entries(dashboard.buckets, dashboard.generated_at)
    return DashboardResponse.from_dashboard(dashboard, entries)


@router.get("/dashboard/stats", response_model=StudyStatsResponse)
async def get_dashboard_stats(
    member_id: int,
    services: Services,
) -> StudyStatsResponse:
    """
    Return only the study stats part of the dashboard.
    """
    try:
        stats = await services.dashboard.get_stats(member_id)
    except SchedulingError as exc:
        _raise_http(exc)
    return StudyStatsResponse.from_stats(stats)
