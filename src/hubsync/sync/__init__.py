"""Sync orchestration -- engine, event log, reservation guard, guarded runner.

Exports:
    SyncEngine: Four-phase storefront -> HubSpot sync pass.
    SyncEventLog: Append-only, never-raising event channel for a run.
    ReservationGuard / InMemoryReservationGuard: Mutual exclusion between runs.
    run_guarded_sync: Reserve, run, always release.
"""

from src.hubsync.sync.engine import SyncEngine
from src.hubsync.sync.events import SyncEventLog
from src.hubsync.sync.reservation import InMemoryReservationGuard, ReservationGuard
from src.hubsync.sync.runner import SyncOutcome, run_guarded_sync
from src.hubsync.sync.schemas import (
    EventLevel,
    ReservationResult,
    ReservationSnapshot,
    SyncEvent,
    SyncResult,
)

__all__ = [
    "EventLevel",
    "InMemoryReservationGuard",
    "ReservationGuard",
    "ReservationResult",
    "ReservationSnapshot",
    "SyncEngine",
    "SyncEvent",
    "SyncEventLog",
    "SyncOutcome",
    "SyncResult",
    "run_guarded_sync",
]
