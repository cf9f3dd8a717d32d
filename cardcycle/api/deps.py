"""
Wire the scheduling services onto a request-scoped database session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Awaitable, Callable

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cardcycle.config import SchedulerConfig
from cardcycle.db.session import get_db
from cardcycle.scheduling.completion import ReviewCompletionHandler, ReviewQueue
from cardcycle.scheduling.dashboard import DashboardService
from cardcycle.scheduling.sql_store import SqlActivityLog, SqlCatalog, SqlReviewStore


@dataclass
class ReviewServices:
    completion: ReviewCompletionHandler
    queue: ReviewQueue
    dashboard: DashboardService
    # Commits the unit of work after a successful write.
    commit: Callable[[], Awaitable[None]]


def build_services(db: AsyncSession, config: SchedulerConfig) -> ReviewServices:
    store = SqlReviewStore(db)
    catalog = SqlCatalog(db)
    activity_log = SqlActivityLog(db, tz=config.tz())
    return ReviewServices(
        completion=ReviewCompletionHandler(
            store=store,
            members=catalog,
            cards=catalog,
            activity_log=activity_log,
            config=config,
        ),
        queue=ReviewQueue(store),
        dashboard=DashboardService(
            store=store,
            members=catalog,
            activity_log=activity_log,
            config=config,
        ),
        commit=db.commit,
    )


async def get_review_services(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReviewServices:
    """
    FastAPI dependency returning services bound to the request's session.

    Uses the config resolved at startup; falls back to the environment when
    the app was started without its lifespan.
    """
    config = getattr(request.app.state, "scheduler_config", None) or SchedulerConfig.from_env()
    return build_services(db, config)
