"""Duplicate finder -- groups storefront and HubSpot companies by normalized name.

Two strategies:

efficient
    Page through every HubSpot company that has a name but no
    ``cscart_company_id`` (never synced from the storefront), add every
    storefront company, and group the union by normalized name. A few
    search pages regardless of storefront size.

targeted
    For each storefront company, search HubSpot for unsynced companies whose
    name contains the company name as a token and keep exact normalized
    matches. One or two searches per distinct name: higher recall for large
    HubSpot portals, higher API cost.

Both return only groups with two or more members, largest first.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from src.hubsync.crm.adapter import CRMTarget
from src.hubsync.crm.field_mapping import COMPANY_EXTERNAL_ID
from src.hubsync.duplicates.normalize import normalize_company_name
from src.hubsync.duplicates.schemas import DuplicateCompany, DuplicateGroup
from src.hubsync.source.schemas import SourceCompany

logger = structlog.get_logger(__name__)

SEARCH_PROPERTIES = ["hs_object_id", "name", "domain", "city", "state", "country", "phone", "email"]

# HubSpot search caps page size at 100
SEARCH_PAGE_LIMIT = 100
TARGETED_MATCH_LIMIT = 20
MIN_SEARCH_TERM_LENGTH = 2

_UNSYNCED = {"propertyName": COMPANY_EXTERNAL_ID, "operator": "NOT_HAS_PROPERTY"}


def _sorted_groups(groups: list[DuplicateGroup]) -> list[DuplicateGroup]:
    return sorted(groups, key=lambda g: g.count, reverse=True)


def group_by_name(companies: Sequence[DuplicateCompany]) -> list[DuplicateGroup]:
    """Group companies by normalized name, keeping groups of two or more."""
    buckets: dict[str, list[DuplicateCompany]] = {}
    for company in companies:
        key = normalize_company_name(company.name)
        if not key:
            continue
        buckets.setdefault(key, []).append(company)

    return _sorted_groups(
        [DuplicateGroup.of(key, members) for key, members in buckets.items() if len(members) > 1]
    )


class DuplicateFinder:
    """Finds duplicate companies across the storefront and HubSpot.

    Args:
        crm: HubSpot (or compatible) target used for searches.
        batch_delay: Seconds to pause between targeted-search batches.
    """

    def __init__(self, crm: CRMTarget, batch_delay: float = 0.1) -> None:
        self._crm = crm
        self._batch_delay = batch_delay

    async def fetch_unsynced_crm_companies(self) -> list[dict]:
        """Return every named HubSpot company without a storefront id.

        Search failures propagate; a partial listing would under-report
        duplicates silently.
        """
        records: list[dict] = []
        after: str | None = None
        while True:
            page = await self._crm.search_objects(
                "companies",
                filters=[_UNSYNCED, {"propertyName": "name", "operator": "HAS_PROPERTY"}],
                properties=SEARCH_PROPERTIES,
                limit=SEARCH_PAGE_LIMIT,
                after=after,
            )
            records.extend(page.results)
            after = page.after
            if not after:
                break
        return records

    async def find_efficient(self, companies: Sequence[SourceCompany]) -> list[DuplicateGroup]:
        crm_records = await self.fetch_unsynced_crm_companies()
        logger.info(
            "duplicates.scan_started",
            method="efficient",
            crm_companies=len(crm_records),
            source_companies=len(companies),
        )

        members = [DuplicateCompany.from_source(c) for c in companies]
        members.extend(
            DuplicateCompany.from_crm(record)
            for record in crm_records
            if (record.get("properties") or {}).get("name")
        )

        groups = group_by_name(members)
        logger.info("duplicates.scan_complete", method="efficient", groups=len(groups))
        return groups

    async def find_targeted(
        self,
        companies: Sequence[SourceCompany],
        batch_size: int = 10,
    ) -> list[DuplicateGroup]:
        """Search HubSpot per storefront company, in concurrent batches.

        A search failure for one company is logged and that company is
        skipped; the remaining companies are still searched.
        """
        batch_size = max(1, batch_size)
        groups: list[DuplicateGroup] = []
        processed: set[str] = set()

        for start in range(0, len(companies), batch_size):
            batch = companies[start:start + batch_size]
            found = await asyncio.gather(*(self._match_one(c, processed) for c in batch))
            groups.extend(group for group in found if group is not None)

            if self._batch_delay and start + batch_size < len(companies):
                await asyncio.sleep(self._batch_delay)

        logger.info("duplicates.scan_complete", method="targeted", groups=len(groups))
        return _sorted_groups(groups)

    async def _match_one(self, company: SourceCompany, processed: set[str]) -> DuplicateGroup | None:
        normalized = normalize_company_name(company.company)
        if not normalized or normalized in processed:
            return None
        processed.add(normalized)

        try:
            matches: dict[str, dict] = {}
            for term in dict.fromkeys([(company.company or "").strip(), normalized]):
                if len(term) < MIN_SEARCH_TERM_LENGTH:
                    continue
                page = await self._crm.search_objects(
                    "companies",
                    filters=[{"propertyName": "name", "operator": "CONTAINS_TOKEN", "value": term}, _UNSYNCED],
                    properties=SEARCH_PROPERTIES,
                    limit=TARGETED_MATCH_LIMIT,
                )
                for record in page.results:
                    name = (record.get("properties") or {}).get("name")
                    if normalize_company_name(name) == normalized:
                        matches.setdefault(str(record["id"]), record)
        except Exception as exc:
            logger.error(
                "duplicates.search_failed",
                company_id=company.company_id,
                name=company.company,
                error=str(exc),
            )
            return None

        if not matches:
            return None

        members = [DuplicateCompany.from_source(company)]
        members.extend(DuplicateCompany.from_crm(record) for record in matches.values())
        return DuplicateGroup.of(normalized, members)
