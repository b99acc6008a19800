"""Root API router for v1 endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from weberis.api.v1 import access, agreements, auth, businesses, feed, health, pipeline, tasks, time_tracking
from weberis.core.config import get_config

api_router = APIRouter(prefix=get_config().API_PREFIX)
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(businesses.router)
api_router.include_router(pipeline.router)
api_router.include_router(tasks.router)
api_router.include_router(time_tracking.router)
api_router.include_router(agreements.router)
api_router.include_router(access.router)
api_router.include_router(feed.router)


def get_api_router() -> APIRouter:
    return api_router
