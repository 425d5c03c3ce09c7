"""CRM target abstract base class -- the interface the sync engine and utilities talk to.

HubSpotClient implements the remote primitives (search, create, update,
associate, archive). The idempotent upsert and the guarded association are
implemented once here on top of those primitives, so every backend (and
every test double) shares the same semantics.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from src.hubsync.crm.field_mapping import MappingError


class UpsertResult(BaseModel):
    """Outcome of an upsert. id is None for a dry-run create."""

    id: str | None = None
    created: bool = False


class SearchPage(BaseModel):
    """One page of search results plus the cursor for the next page."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    after: str | None = None


class CRMTarget(ABC):
    """Abstract interface for the remote CRM.

    Records are plain dicts in the remote API shape: ``{"id": ..., "properties": {...}}``.

    Methods:
        ensure_schema: Idempotently create the custom properties the sync relies on.
        search: Exact-match lookup of one record by a property value.
        search_objects: One page of a filtered search.
        create / update: Write a record's properties.
        create_association: Link a contact to a company.
        archive / get_by_id: Used by the merge and cleanup utilities.
    """

    @abstractmethod
    async def ensure_schema(self) -> None:
        """Guarantee the custom property definitions exist."""
        ...

    @abstractmethod
    async def search(self, object_type: str, property_name: str, value: Any) -> dict[str, Any] | None:
        """Return the first record whose property equals value, or None."""
        ...

    @abstractmethod
    async def search_objects(
        self,
        object_type: str,
        filters: list[dict[str, Any]],
        properties: list[str],
        limit: int = 100,
        after: str | None = None,
    ) -> SearchPage:
        """Return one page of records matching all filters."""
        ...

    @abstractmethod
    async def create(self, object_type: str, properties: dict[str, Any]) -> str:
        """Create a record, return its id."""
        ...

    @abstractmethod
    async def update(self, object_type: str, object_id: str, properties: dict[str, Any]) -> None:
        """Update a record's properties."""
        ...

    @abstractmethod
    async def create_association(self, contact_id: str, company_id: str) -> None:
        """Create the contact -> company association."""
        ...

    @abstractmethod
    async def archive(self, object_id: str, object_type: str = "companies") -> None:
        """Archive (soft-delete) a record."""
        ...

    @abstractmethod
    async def get_by_id(
        self, object_id: str, object_type: str = "companies", properties: list[str] | None = None
    ) -> dict[str, Any]:
        """Fetch a record by id."""
        ...

    async def aclose(self) -> None:
        """Release any underlying connections."""

    async def __aenter__(self) -> CRMTarget:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ── Composite operations ────────────────────────────────────────────────

    async def upsert(
        self,
        object_type: str,
        properties: dict[str, Any],
        external_id_property: str,
        dry_run: bool = False,
    ) -> UpsertResult:
        """Search by external id, then update the match or create a new record.

        Sequentially idempotent: a second call with the same external id
        updates the record the first call created. Two concurrent calls for
        the same external id can both miss the search and both create; the
        reservation guard keeps overlapping runs from doing that.

        In dry-run mode only the search is performed.
        """
        external_id = properties.get(external_id_property)
        if external_id is None:
            raise MappingError(f"upsert {object_type}: missing {external_id_property}")

        existing = await self.search(object_type, external_id_property, external_id)
        if existing:
            if not dry_run:
                await self.update(object_type, existing["id"], properties)
            return UpsertResult(id=existing["id"], created=False)

        if dry_run:
            return UpsertResult(id=None, created=True)

        new_id = await self.create(object_type, properties)
        return UpsertResult(id=new_id, created=True)

    async def associate(self, contact_id: str | None, company_id: str | None, dry_run: bool = False) -> bool:
        """Associate a contact to a company. Returns False when skipped."""
        if not contact_id or not company_id or dry_run:
            return False
        await self.create_association(contact_id, company_id)
        return True
