"""
MealTracker Backend - Health Check Route
=========================================

What:  GET /health for monitoring and platform health checks.
How:   Reports the DurableStore state without touching the database, so a
       check never triggers image acquisition or a remote fetch.

Status levels:
    healthy:   store not yet used, or the last mutation reached durable storage
    degraded:  the last mutation only reached the local cache, or nothing at all
"""

import logging
import time

from fastapi import APIRouter, Depends

from mealtracker import __version__
from mealtracker.schemas.catalog import HealthResponse
from mealtracker.storage import DurableStore, PersistOutcome, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(store: DurableStore = Depends(get_store)) -> HealthResponse:
    last = store.last_persistence
    overall = "healthy"
    if last is not None and last is not PersistOutcome.DURABLE:
        overall = "degraded"
        logger.warning("Health check: last mutation persistence was %s", last.value)

    return HealthResponse(
        status=overall,
        version=__version__,
        store_state=store.state.value,
        mode=store.mode,
        image_source=store.image_source,
        last_persistence=last.value if last is not None else None,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
