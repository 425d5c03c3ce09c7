"""Storefront -> HubSpot sync engine.

One run is a single pass through four strictly ordered phases:

1. Bootstrap -- ensure the HubSpot custom properties exist. Fatal on failure.
2. Fetch -- read the companies (optionally a subset) and their admin users.
3. Company phase -- map + upsert every company concurrently, bounded by a
   semaphore. Successful upserts fill the correlation map
   (company_id -> HubSpot company id).
4. Contact phase -- map + upsert every user concurrently under the same
   bound, then associate it to its company's HubSpot id when the
   correlation map has one.

Each record is its own failure domain: an exception inside one task becomes
an error event and never cancels sibling tasks. The contact phase starts
only after every company task has settled, because it reads the
correlation map the company phase builds.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence

import structlog

from src.hubsync.core.monitoring import sync_records_total
from src.hubsync.crm.adapter import CRMTarget
from src.hubsync.crm.field_mapping import (
    COMPANY_EXTERNAL_ID,
    CONTACT_EXTERNAL_ID,
    contact_display_name,
    map_company,
    map_user,
)
from src.hubsync.source.reader import SourceReader
from src.hubsync.source.schemas import CompanyFilter, SourceCompany, SourceUser
from src.hubsync.sync.events import SyncEventLog
from src.hubsync.sync.schemas import SyncResult

logger = structlog.get_logger(__name__)


def _describe_error(exc: Exception) -> str:
    message = str(exc) or exc.__class__.__name__
    body = getattr(exc, "body", None)
    if body:
        message = f"{message} | body={body}"
    return message


class SyncEngine:
    """Runs one storefront -> HubSpot sync pass.

    Args:
        reader: Source of companies and admin users.
        crm: HubSpot (or compatible) target.
        concurrency: Maximum number of in-flight upsert sequences.
        page_size: Page size for source reads.
    """

    def __init__(
        self,
        reader: SourceReader,
        crm: CRMTarget,
        concurrency: int = 2,
        page_size: int = 100,
    ) -> None:
        self._reader = reader
        self._crm = crm
        self._concurrency = max(1, concurrency)
        self._page_size = page_size

    async def run(
        self,
        company_ids: Sequence[int] | None = None,
        dry_run: bool = False,
        events: SyncEventLog | None = None,
    ) -> SyncResult:
        """Execute a full pass. Fatal errors are recorded as one error event and re-raised."""
        events = events if events is not None else SyncEventLog()
        result = SyncResult(dry_run=dry_run)
        log = logger.bind(dry_run=dry_run, targeted=bool(company_ids))

        # Phase 1: bootstrap
        try:
            await self._crm.ensure_schema()
        except Exception as exc:
            events.error(f"HubSpot schema setup failed: {_describe_error(exc)}")
            raise

        # Phase 2: fetch
        try:
            companies = await self._reader.fetch_companies(
                CompanyFilter(
                    page_size=self._page_size,
                    company_ids=list(company_ids) if company_ids else None,
                )
            )
            events.info(f"Fetched {len(companies)} companies")

            users = await self._reader.fetch_users_for_companies(
                [c.company_id for c in companies], page_size=self._page_size
            )
            events.info(f"Fetched {len(users)} admin users")
        except Exception as exc:
            events.error(f"Failed to read source records: {_describe_error(exc)}")
            raise

        result.companies_processed = len(companies)
        result.users_processed = len(users)

        semaphore = asyncio.Semaphore(self._concurrency)

        # Phase 3: companies
        company_outcomes = await self._fan_out(
            semaphore,
            [lambda c=c: self._sync_company(c, dry_run, result.correlation, events) for c in companies],
        )
        result.companies_succeeded = sum(company_outcomes)
        result.companies_failed = len(company_outcomes) - result.companies_succeeded

        # Phase 4: contacts (correlation map is complete here)
        owners = {c.company_id: c for c in companies}
        user_outcomes = await self._fan_out(
            semaphore,
            [
                lambda u=u: self._sync_user(u, owners.get(u.company_id), dry_run, result.correlation, events)
                for u in users
            ],
        )
        result.users_succeeded = sum(user_outcomes)
        result.users_failed = len(user_outcomes) - result.users_succeeded

        log.info(
            "sync.run_complete",
            companies=result.companies_processed,
            companies_failed=result.companies_failed,
            users=result.users_processed,
            users_failed=result.users_failed,
        )
        return result

    @staticmethod
    async def _fan_out(
        semaphore: asyncio.Semaphore,
        tasks: list[Callable[[], Awaitable[bool]]],
    ) -> list[bool]:
        """Run every task under the semaphore and wait for all of them to settle."""

        async def _gated(task: Callable[[], Awaitable[bool]]) -> bool:
            async with semaphore:
                return await task()

        return list(await asyncio.gather(*(_gated(task) for task in tasks)))

    async def _sync_company(
        self,
        company: SourceCompany,
        dry_run: bool,
        correlation: dict[int, str | None],
        events: SyncEventLog,
    ) -> bool:
        try:
            properties = map_company(company)
            res = await self._crm.upsert("companies", properties, COMPANY_EXTERNAL_ID, dry_run=dry_run)
        except Exception as exc:
            sync_records_total.labels(object_type="company", outcome="failed").inc()
            events.error(
                f"Failed to upsert company {company.company_id}: {_describe_error(exc)}",
                object_type="company",
                external_id=company.company_id,
            )
            return False

        correlation[company.company_id] = res.id
        outcome = "created" if res.created else "updated"
        sync_records_total.labels(object_type="company", outcome=outcome).inc()
        events.info(
            f"{outcome.capitalize()} company {company.company_id} -> {res.id or '(dry-run)'}",
            object_type="company",
            external_id=company.company_id,
            target_id=res.id,
        )
        return True

    async def _sync_user(
        self,
        user: SourceUser,
        owner: SourceCompany | None,
        dry_run: bool,
        correlation: dict[int, str | None],
        events: SyncEventLog,
    ) -> bool:
        try:
            properties = map_user(user, owner)
            res = await self._crm.upsert("contacts", properties, CONTACT_EXTERNAL_ID, dry_run=dry_run)
            outcome = "created" if res.created else "updated"
            events.info(
                f"{outcome.capitalize()} contact user {user.user_id} "
                f"({contact_display_name(user)}) -> {res.id or '(dry-run)'}",
                object_type="contact",
                external_id=user.user_id,
                target_id=res.id,
            )

            company_target_id = correlation.get(user.company_id)
            if company_target_id and await self._crm.associate(res.id, company_target_id, dry_run=dry_run):
                events.info(
                    f"Associated contact {res.id} -> company {company_target_id}",
                    object_type="contact",
                    external_id=user.user_id,
                    target_id=res.id,
                )
        except Exception as exc:
            sync_records_total.labels(object_type="contact", outcome="failed").inc()
            events.error(
                f"Failed to upsert/associate contact user {user.user_id}: {_describe_error(exc)}",
                object_type="contact",
                external_id=user.user_id,
            )
            return False

        sync_records_total.labels(object_type="contact", outcome=outcome).inc()
        return True
