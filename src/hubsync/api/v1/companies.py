"""Storefront company listing endpoint.

Rows are returned with their storefront column names (company_id, company,
...) plus the derived aggregate counts.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from src.hubsync.api.deps import get_source_reader
from src.hubsync.config import get_settings, parse_id_list
from src.hubsync.source.reader import SourceReader
from src.hubsync.source.schemas import CompanyFilter, CompanyStatus

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["companies"])


@router.get("/companies")
async def list_companies(
    ids: str | None = Query(default=None, description="Comma-separated company ids"),
    status_filter: CompanyStatus | None = Query(default=None, alias="status"),
    reader: SourceReader = Depends(get_source_reader),
) -> Any:
    """List storefront companies, optionally restricted to ids and/or a status."""
    company_ids = parse_id_list(ids)
    try:
        companies = await reader.fetch_companies(
            CompanyFilter(
                page_size=get_settings().PAGE_SIZE,
                company_ids=company_ids or None,
                status=status_filter,
            )
        )
    except Exception as exc:
        logger.error("api.companies_failed", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "error": str(exc)},
        )

    return {
        "ok": True,
        "count": len(companies),
        "data": [company.model_dump(mode="json") for company in companies],
    }
