"""V1 API router -- aggregates all endpoint routers.

Health checks stay at the root; everything else is served under /api.
"""

from __future__ import annotations

from fastapi import APIRouter

from src.hubsync.api.v1 import cleanup, companies, duplicates, health, sync

API_PREFIX = "/api"

router = APIRouter()

router.include_router(health.router)
router.include_router(companies.router, prefix=API_PREFIX)
router.include_router(sync.router, prefix=API_PREFIX)
router.include_router(duplicates.router, prefix=API_PREFIX)
router.include_router(cleanup.router, prefix=API_PREFIX)
