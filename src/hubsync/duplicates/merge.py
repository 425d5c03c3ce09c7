"""Merge dispatch for a selected duplicate group.

A selection is merged inside the system its members come from: storefront
companies through CompanyMerger (foreign-key rewrite), HubSpot-only
companies through merge_crm_companies (archive). Selections mixing both
systems are rejected.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog
from pydantic import BaseModel

from src.hubsync.crm.adapter import CRMTarget
from src.hubsync.crm.cleanup import CRMMergeResult, merge_crm_companies
from src.hubsync.duplicates.schemas import CompanySource, DuplicateCompany, MergeRequest
from src.hubsync.source.merge import CompanyMerger, StoreMergeResult

logger = structlog.get_logger(__name__)


class MergeError(ValueError):
    """The merge selection cannot be executed as requested."""


class MergeOutcome(BaseModel):
    merge_type: CompanySource
    result: StoreMergeResult | CRMMergeResult


def merge_type_for(request: MergeRequest) -> CompanySource:
    """Validate the selection and return the system it belongs to.

    Raises:
        MergeError: Missing primary, empty duplicate list, or mixed sources.
    """
    if request.primary_company is None or not request.primary_company.id:
        raise MergeError("primaryCompany is required")
    if not request.duplicate_companies:
        raise MergeError("duplicateCompanies array is required")

    sources = {c.source for c in [request.primary_company, *request.duplicate_companies]}
    if len(sources) > 1:
        raise MergeError(
            "Mixed CS-Cart and HubSpot company merging is not supported. "
            "Please merge within the same source."
        )
    return sources.pop()


def _require(company: DuplicateCompany, attr: str, label: str):
    value = getattr(company, attr)
    if value is None:
        raise MergeError(f"Company {company.id} has no {label}")
    return value


async def merge_duplicates(
    request: MergeRequest,
    store_merger: CompanyMerger,
    crm_factory: Callable[[], CRMTarget],
) -> MergeOutcome:
    """Merge the selection in its own system. The CRM client is only created for HubSpot merges."""
    merge_type = merge_type_for(request)
    primary = request.primary_company
    duplicates = request.duplicate_companies

    logger.info(
        "duplicates.merge_requested",
        merge_type=merge_type.value,
        primary=primary.id,
        duplicates=[d.id for d in duplicates],
        dry_run=request.dry_run,
    )

    if merge_type is CompanySource.CSCART:
        primary_id = _require(primary, "cscart_id", "storefront id")
        duplicate_ids = [_require(d, "cscart_id", "storefront id") for d in duplicates]
        try:
            result = await store_merger.merge_companies(primary_id, duplicate_ids, dry_run=request.dry_run)
        except LookupError as exc:
            raise MergeError(str(exc)) from exc
        return MergeOutcome(merge_type=merge_type, result=result)

    primary_id = _require(primary, "hubspot_id", "HubSpot id")
    duplicate_ids = [_require(d, "hubspot_id", "HubSpot id") for d in duplicates]
    async with crm_factory() as crm:
        result = await merge_crm_companies(crm, primary_id, duplicate_ids, dry_run=request.dry_run)
    return MergeOutcome(merge_type=merge_type, result=result)
