"""Reservation guard -- mutual exclusion between overlapping sync runs.

A full sync reserves everything; a targeted sync reserves a set of company
ids. A full sync conflicts with any other reservation, and a targeted sync
conflicts with a full sync or with any overlapping id. Reservation is
all-or-nothing per call.

The in-memory guard relies on the single-threaded event loop: reserve() and
release() never await, so they cannot interleave. A multi-threaded or
multi-process deployment needs another ReservationGuard implementation
(a lock, or a shared store).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

import structlog

from src.hubsync.sync.schemas import (
    ReservationConflicts,
    ReservationResult,
    ReservationSnapshot,
)

logger = structlog.get_logger(__name__)


class ReservationGuard(ABC):
    """Interface for sync reservations."""

    @abstractmethod
    def reserve(self, company_ids: Sequence[int] | None = None) -> ReservationResult:
        """Reserve a full sync (no ids) or the given ids."""
        ...

    @abstractmethod
    def release(self, company_ids: Sequence[int] | None = None) -> None:
        """Release a full sync (no ids) or exactly the given ids."""
        ...

    @abstractmethod
    def snapshot(self) -> ReservationSnapshot:
        """Return the current reservation state."""
        ...

    @abstractmethod
    def reset(self) -> None:
        """Drop every reservation (tests and operator recovery)."""
        ...


class InMemoryReservationGuard(ReservationGuard):
    """Process-local reservation state owned by whoever constructs it."""

    def __init__(self) -> None:
        self._global = False
        self._companies: set[int] = set()

    def reserve(self, company_ids: Sequence[int] | None = None) -> ReservationResult:
        if not company_ids:
            if self._global or self._companies:
                logger.info("reservation.rejected", scope="full")
                return ReservationResult(
                    ok=False,
                    reason="Another sync is already running",
                    conflicts=ReservationConflicts(
                        global_=self._global,
                        companies=sorted(self._companies),
                    ),
                )
            self._global = True
            logger.info("reservation.acquired", scope="full")
            return ReservationResult(ok=True)

        if self._global:
            logger.info("reservation.rejected", scope="targeted", reason="full_sync_running")
            return ReservationResult(
                ok=False,
                reason="A full sync is already running",
                conflicts=ReservationConflicts(global_=True),
            )

        requested = list(dict.fromkeys(company_ids))
        overlapping = [company_id for company_id in requested if company_id in self._companies]
        if overlapping:
            logger.info("reservation.rejected", scope="targeted", conflicts=overlapping)
            return ReservationResult(
                ok=False,
                reason="Some companies are already syncing",
                conflicts=ReservationConflicts(companies=overlapping),
            )

        self._companies.update(requested)
        logger.info("reservation.acquired", scope="targeted", companies=requested)
        return ReservationResult(ok=True)

    def release(self, company_ids: Sequence[int] | None = None) -> None:
        # An empty release always clears the full-sync flag; callers must
        # release with the same ids they reserved.
        if not company_ids:
            self._global = False
            logger.info("reservation.released", scope="full")
            return
        self._companies.difference_update(company_ids)
        logger.info("reservation.released", scope="targeted", companies=list(company_ids))

    def snapshot(self) -> ReservationSnapshot:
        return ReservationSnapshot(global_=self._global, companies=sorted(self._companies))

    def reset(self) -> None:
        self._global = False
        self._companies.clear()
