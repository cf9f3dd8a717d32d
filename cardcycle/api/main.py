"""
FastAPI application for the review scheduler API.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cardcycle import __version__
from cardcycle.config import SchedulerConfig
from cardcycle.db.session import engine

from .review_routes import router as review_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Resolve the scheduler config on startup; dispose the engine on shutdown."""
    config = SchedulerConfig.from_env()
    config.tz()  # fail fast on an unknown timezone name
    app.state.scheduler_config = config
    logger.info("Review scheduler starting: timezone=%s", config.timezone)
    yield
    await engine.dispose()


app = FastAPI(
    title="cardcycle API",
    description="Spaced-repetition review scheduling for flashcard decks",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
app.include_router(review_router)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}
