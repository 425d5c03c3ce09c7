"""FastAPI dependencies for the components wired onto app.state by the lifespan.

Each getter returns 503 when its component did not initialize, so a missing
database or HubSpot configuration degrades the affected endpoints instead
of preventing startup.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import HTTPException, Request, status

from src.hubsync.crm.adapter import CRMTarget
from src.hubsync.source.merge import CompanyMerger
from src.hubsync.source.reader import SourceReader
from src.hubsync.sync.reservation import ReservationGuard


def _from_state(request: Request, name: str, label: str) -> Any:
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not available. Check the service configuration.",
        )
    return component


def get_reservation_guard(request: Request) -> ReservationGuard:
    """Retrieve the process-wide ReservationGuard, 503 if not available."""
    return _from_state(request, "reservation_guard", "Reservation guard")


def get_source_reader(request: Request) -> SourceReader:
    """Retrieve the SourceReader, 503 if the source database is not configured."""
    return _from_state(request, "source_reader", "Source reader")


def get_company_merger(request: Request) -> CompanyMerger:
    """Retrieve the storefront CompanyMerger, 503 if not available."""
    return _from_state(request, "company_merger", "Company merger")


def get_crm_factory(request: Request) -> Callable[[], CRMTarget]:
    """Retrieve the factory that opens a fresh CRM client per request."""
    return _from_state(request, "crm_factory", "HubSpot client")
