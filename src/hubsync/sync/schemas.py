"""Pydantic schemas for sync runs -- events, terminal result, reservations.

JSON field names are camelCase to match the HTTP surface.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventLevel(str, Enum):
    INFO = "info"
    ERROR = "error"


class SyncEvent(_CamelModel):
    """One entry of a run's event stream, in completion order."""

    level: EventLevel
    message: str
    object_type: str | None = None
    external_id: int | None = None
    target_id: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SyncResult(_CamelModel):
    """Terminal result of one sync run.

    companies_processed / users_processed count records *attempted*, not
    records that succeeded. Per-phase success and failure counts are
    reported alongside them.
    """

    companies_processed: int = 0
    users_processed: int = 0
    companies_succeeded: int = 0
    companies_failed: int = 0
    users_succeeded: int = 0
    users_failed: int = 0
    dry_run: bool = False
    # source company_id -> HubSpot company id; lives only for this run
    correlation: dict[int, str | None] = Field(default_factory=dict, exclude=True)


class ReservationConflicts(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    global_: bool = Field(default=False, alias="global")
    companies: list[int] = Field(default_factory=list)


class ReservationResult(BaseModel):
    """Outcome of ReservationGuard.reserve(). A rejection is not an error."""

    ok: bool
    reason: str | None = None
    conflicts: ReservationConflicts | None = None


class ReservationSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    global_: bool = Field(default=False, alias="global")
    companies: list[int] = Field(default_factory=list)
