"""Sync trigger and reservation status endpoints."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from src.hubsync.api.deps import get_crm_factory, get_reservation_guard, get_source_reader
from src.hubsync.config import get_settings
from src.hubsync.crm.adapter import CRMTarget
from src.hubsync.source.reader import SourceReader
from src.hubsync.sync.engine import SyncEngine
from src.hubsync.sync.events import SyncEventLog
from src.hubsync.sync.reservation import ReservationGuard
from src.hubsync.sync.runner import run_guarded_sync

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["sync"])


class SyncRequest(BaseModel):
    """Body of POST /sync. dryRun defaults to the DRY_RUN setting; no ids means a full sync."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    dry_run: bool | None = None
    company_ids: list[int] | None = None


@router.post("/sync")
async def trigger_sync(
    body: SyncRequest | None = Body(default=None),
    guard: ReservationGuard = Depends(get_reservation_guard),
    reader: SourceReader = Depends(get_source_reader),
    crm_factory: Callable[[], CRMTarget] = Depends(get_crm_factory),
) -> Any:
    """Run one guarded sync and return its result with the full event stream.

    409 when the reservation is rejected; 500 with the events emitted so far
    when the run fails.
    """
    settings = get_settings()
    body = body or SyncRequest()
    dry_run = settings.DRY_RUN if body.dry_run is None else body.dry_run
    events = SyncEventLog()

    try:
        async with crm_factory() as crm:
            engine = SyncEngine(
                reader,
                crm,
                concurrency=settings.SYNC_CONCURRENCY,
                page_size=settings.PAGE_SIZE,
            )
            outcome = await run_guarded_sync(
                guard,
                engine,
                company_ids=body.company_ids,
                dry_run=dry_run,
                events=events,
            )
    except Exception as exc:
        logger.error("api.sync_failed", error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "ok": False,
                "error": str(exc),
                "events": [e.model_dump(mode="json", by_alias=True) for e in events.events],
            },
        )

    if not outcome.reservation.ok:
        conflicts = outcome.reservation.conflicts
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "ok": False,
                "error": outcome.reservation.reason,
                "conflicts": conflicts.model_dump(by_alias=True) if conflicts else None,
            },
        )

    return {
        "ok": True,
        "result": outcome.result.model_dump(mode="json", by_alias=True),
        "events": [e.model_dump(mode="json", by_alias=True) for e in events.events],
    }


@router.get("/status")
async def sync_status(guard: ReservationGuard = Depends(get_reservation_guard)) -> Any:
    """Current reservation state: the full-sync flag and the reserved company ids."""
    snapshot = guard.snapshot()
    return {"ok": True, "global": snapshot.global_, "companies": snapshot.companies}
