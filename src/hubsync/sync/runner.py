"""Guarded sync entry point shared by the HTTP API and the CLI.

Reserves the run's scope before any phase starts and releases exactly that
reservation when the run ends, whether it completed or raised. A rejected
reservation is returned as an outcome, not raised.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from pydantic import BaseModel

from src.hubsync.core.monitoring import sync_runs_total
from src.hubsync.sync.engine import SyncEngine
from src.hubsync.sync.events import SyncEventLog
from src.hubsync.sync.reservation import ReservationGuard
from src.hubsync.sync.schemas import ReservationResult, SyncResult

logger = structlog.get_logger(__name__)


class SyncOutcome(BaseModel):
    """Either a completed run (result set) or a rejected reservation."""

    reservation: ReservationResult
    result: SyncResult | None = None


async def run_guarded_sync(
    guard: ReservationGuard,
    engine: SyncEngine,
    company_ids: Sequence[int] | None = None,
    dry_run: bool = False,
    events: SyncEventLog | None = None,
) -> SyncOutcome:
    """Reserve, run, and always release.

    Exceptions raised by the run propagate after the reservation is released.
    """
    ids = list(company_ids) if company_ids else None
    dry_run_label = str(dry_run).lower()

    reservation = guard.reserve(ids)
    if not reservation.ok:
        sync_runs_total.labels(outcome="conflict", dry_run=dry_run_label).inc()
        logger.warning("sync.reservation_conflict", reason=reservation.reason, company_ids=ids)
        return SyncOutcome(reservation=reservation)

    try:
        result = await engine.run(company_ids=ids, dry_run=dry_run, events=events)
    except Exception:
        sync_runs_total.labels(outcome="failed", dry_run=dry_run_label).inc()
        logger.error("sync.run_failed", company_ids=ids, exc_info=True)
        raise
    finally:
        guard.release(ids)

    sync_runs_total.labels(outcome="completed", dry_run=dry_run_label).inc()
    return SyncOutcome(reservation=reservation, result=result)
