"""Duplicate company scan and merge endpoints."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from src.hubsync.api.deps import get_company_merger, get_crm_factory, get_source_reader
from src.hubsync.config import get_settings
from src.hubsync.crm.adapter import CRMTarget
from src.hubsync.duplicates.finder import DuplicateFinder
from src.hubsync.duplicates.merge import MergeError, merge_duplicates
from src.hubsync.duplicates.schemas import MergeRequest, ScanMethod
from src.hubsync.source.merge import CompanyMerger
from src.hubsync.source.reader import SourceReader
from src.hubsync.source.schemas import CompanyFilter

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["duplicates"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


@router.get("/duplicates")
async def find_duplicates(
    method: ScanMethod = Query(default=ScanMethod.EFFICIENT),
    batch_size: int = Query(default=10, alias="batchSize", gt=0),
    reader: SourceReader = Depends(get_source_reader),
    crm_factory: Callable[[], CRMTarget] = Depends(get_crm_factory),
) -> Any:
    """Group storefront and unsynced HubSpot companies by normalized name."""
    try:
        companies = await reader.fetch_companies(
            CompanyFilter(page_size=get_settings().DUPLICATE_SCAN_PAGE_SIZE)
        )
        async with crm_factory() as crm:
            await crm.ensure_schema()
            finder = DuplicateFinder(crm)
            if method is ScanMethod.TARGETED:
                groups = await finder.find_targeted(companies, batch_size=batch_size)
            else:
                groups = await finder.find_efficient(companies)
    except Exception as exc:
        logger.error("api.duplicates_scan_failed", method=method.value, error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    return {
        "ok": True,
        "method": method.value,
        "count": len(groups),
        "totalDuplicates": sum(group.count for group in groups),
        "data": [group.model_dump(mode="json", by_alias=True) for group in groups],
    }


@router.post("/duplicates")
async def merge_duplicate_companies(
    body: MergeRequest,
    merger: CompanyMerger = Depends(get_company_merger),
    crm_factory: Callable[[], CRMTarget] = Depends(get_crm_factory),
) -> Any:
    """Merge a selection within its own system. Mixed selections are rejected with 400."""
    try:
        outcome = await merge_duplicates(body, merger, crm_factory)
    except MergeError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except Exception as exc:
        logger.error("api.duplicates_merge_failed", error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    return {
        "ok": True,
        "result": outcome.result.model_dump(mode="json", by_alias=True),
        "mergeType": outcome.merge_type.value,
    }
