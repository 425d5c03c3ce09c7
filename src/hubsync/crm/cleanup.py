"""HubSpot-side duplicate handling: target-only merges and post-merge cleanup.

Both operations archive HubSpot companies and collect per-record failures
into the result instead of raising, so one bad id never hides the outcome
for the rest.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.hubsync.crm.adapter import CRMTarget
from src.hubsync.crm.field_mapping import COMPANY_EXTERNAL_ID

logger = structlog.get_logger(__name__)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CRMCompanyRef(_CamelModel):
    id: str
    name: str = "Unknown"


class CRMMergeResult(_CamelModel):
    primary: CRMCompanyRef | None = None
    merged: list[CRMCompanyRef] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    dry_run: bool = True


class CleanupMatch(_CamelModel):
    cscart_id: int
    hubspot_id: str


class CleanupResult(_CamelModel):
    found: list[CleanupMatch] = Field(default_factory=list)
    deleted: list[CleanupMatch] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    dry_run: bool = True


def _name_of(record: dict) -> str:
    return (record.get("properties") or {}).get("name") or "Unknown"


async def merge_crm_companies(
    crm: CRMTarget,
    primary_id: str,
    duplicate_ids: Sequence[str],
    dry_run: bool = True,
) -> CRMMergeResult:
    """Archive HubSpot-only duplicates of a primary HubSpot company.

    The primary must exist; a failure to load it is reported as an error and
    nothing is archived.
    """
    result = CRMMergeResult(dry_run=dry_run)

    try:
        primary = await crm.get_by_id(primary_id, properties=["name"])
    except Exception as exc:
        logger.error("crm.merge_primary_failed", primary_id=primary_id, error=str(exc))
        result.errors.append(f"Failed to get primary company: {exc}")
        return result

    result.primary = CRMCompanyRef(id=str(primary["id"]), name=_name_of(primary))

    for duplicate_id in duplicate_ids:
        if str(duplicate_id) == str(primary_id):
            result.errors.append(f"Cannot merge company {duplicate_id} with itself")
            continue
        try:
            duplicate = await crm.get_by_id(duplicate_id, properties=["name"])
            if not dry_run:
                await crm.archive(duplicate_id)
            result.merged.append(CRMCompanyRef(id=str(duplicate_id), name=_name_of(duplicate)))
        except Exception as exc:
            logger.error("crm.merge_duplicate_failed", duplicate_id=duplicate_id, error=str(exc))
            result.errors.append(f"Failed to merge HubSpot company {duplicate_id}: {exc}")

    logger.info(
        "crm.companies_merged",
        primary_id=primary_id,
        merged=len(result.merged),
        errors=len(result.errors),
        dry_run=dry_run,
    )
    return result


async def cleanup_merged_companies(
    crm: CRMTarget,
    merged_company_ids: Sequence[int],
    dry_run: bool = True,
) -> CleanupResult:
    """Archive the HubSpot companies correlated to storefront companies that were merged away."""
    result = CleanupResult(dry_run=dry_run)

    for company_id in merged_company_ids:
        try:
            existing = await crm.search("companies", COMPANY_EXTERNAL_ID, company_id)
            if existing is None:
                logger.debug("crm.cleanup_not_found", cscart_id=company_id)
                continue

            match = CleanupMatch(cscart_id=company_id, hubspot_id=str(existing["id"]))
            result.found.append(match)
            if not dry_run:
                await crm.archive(match.hubspot_id)
                result.deleted.append(match)
        except Exception as exc:
            logger.error("crm.cleanup_failed", cscart_id=company_id, error=str(exc))
            result.errors.append(f"Failed to cleanup company {company_id}: {exc}")

    logger.info(
        "crm.cleanup_complete",
        found=len(result.found),
        deleted=len(result.deleted),
        errors=len(result.errors),
        dry_run=dry_run,
    )
    return result
