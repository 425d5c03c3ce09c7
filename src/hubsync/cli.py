"""Command-line sync runner.

Usage:
    hubsync-sync                         # full sync, dry-run per DRY_RUN
    hubsync-sync --dry-run               # search only, nothing written
    hubsync-sync --no-dry-run --company-ids 12,40

Exits 0 when the run completes (per-record failures included) and 1 on a
fatal error or a reservation conflict.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

import structlog

from src.hubsync.api.middleware.logging import configure_structlog
from src.hubsync.config import get_settings, parse_id_list
from src.hubsync.core.database import close_db, get_session_factory
from src.hubsync.crm.adapter import CRMTarget
from src.hubsync.crm.hubspot import HubSpotClient
from src.hubsync.source.reader import SourceReader
from src.hubsync.sync.engine import SyncEngine
from src.hubsync.sync.events import SyncEventLog
from src.hubsync.sync.reservation import InMemoryReservationGuard, ReservationGuard
from src.hubsync.sync.runner import run_guarded_sync
from src.hubsync.sync.schemas import EventLevel, SyncEvent

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="hubsync-sync",
        description="Sync storefront companies and admin users into HubSpot",
    )
    parser.add_argument(
        "--dry-run",
        action=argparse.BooleanOptionalAction,
        default=settings.DRY_RUN,
        help="Search only, never write to HubSpot (default: DRY_RUN)",
    )
    parser.add_argument(
        "--company-ids",
        default=settings.COMPANY_IDS,
        help="Comma-separated company ids to sync (default: COMPANY_IDS, else all)",
    )
    return parser


def _print_event(event: SyncEvent) -> None:
    stream = sys.stderr if event.level == EventLevel.ERROR else sys.stdout
    print(f"[{event.level.value}] {event.message}", file=stream)


async def run(
    dry_run: bool,
    company_ids: Sequence[int] | None,
    reader: SourceReader | None = None,
    crm: CRMTarget | None = None,
    guard: ReservationGuard | None = None,
) -> int:
    """Run one guarded sync and return the process exit code."""
    settings = get_settings()
    guard = guard or InMemoryReservationGuard()
    events = SyncEventLog(sink=_print_event)
    owns_db = reader is None

    try:
        if reader is None:
            reader = SourceReader(
                get_session_factory(),
                order_statuses=settings.order_statuses,
                page_size=settings.PAGE_SIZE,
            )
        crm = crm or HubSpotClient.from_settings(settings)

        async with crm:
            engine = SyncEngine(
                reader,
                crm,
                concurrency=settings.SYNC_CONCURRENCY,
                page_size=settings.PAGE_SIZE,
            )
            outcome = await run_guarded_sync(
                guard, engine, company_ids=company_ids, dry_run=dry_run, events=events
            )
    except Exception as exc:
        logger.error("cli.sync_failed", error=str(exc))
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 1
    finally:
        if owns_db:
            await close_db()

    if not outcome.reservation.ok:
        print(f"Sync rejected: {outcome.reservation.reason}", file=sys.stderr)
        return 1

    result = outcome.result
    print(
        f"Done{' (dry-run)' if result.dry_run else ''}: "
        f"companies {result.companies_processed} processed, {result.companies_failed} failed; "
        f"users {result.users_processed} processed, {result.users_failed} failed"
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_structlog()
    company_ids = parse_id_list(args.company_ids) or None
    return asyncio.run(run(args.dry_run, company_ids))


if __name__ == "__main__":
    sys.exit(main())
