"""Post-merge HubSpot cleanup endpoint."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.hubsync.api.deps import get_crm_factory
from src.hubsync.crm.adapter import CRMTarget
from src.hubsync.crm.cleanup import cleanup_merged_companies

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["cleanup"])


class CleanupRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    merged_company_ids: list[int] = Field(default_factory=list)
    dry_run: bool = True


@router.post("/hubspot-cleanup")
async def cleanup_hubspot(
    body: CleanupRequest,
    crm_factory: Callable[[], CRMTarget] = Depends(get_crm_factory),
) -> Any:
    """Archive the HubSpot companies of storefront companies that were merged away."""
    if not body.merged_company_ids:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"ok": False, "error": "mergedCompanyIds array is required"},
        )

    try:
        async with crm_factory() as crm:
            await crm.ensure_schema()
            result = await cleanup_merged_companies(crm, body.merged_company_ids, dry_run=body.dry_run)
    except Exception as exc:
        logger.error("api.cleanup_failed", error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "error": str(exc)},
        )

    return {"ok": True, "result": result.model_dump(mode="json", by_alias=True)}
