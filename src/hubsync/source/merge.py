"""Same-store company merge -- repoint child rows to the primary and drop duplicates.

All duplicates of one call are merged inside a single transaction: either
every foreign key is rewritten and every duplicate row deleted, or the
transaction is rolled back and the error propagates.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.hubsync.source.models import (
    CompanyModel,
    OrderModel,
    PaymentModel,
    ProductModel,
    UserModel,
)

logger = structlog.get_logger(__name__)

# Tables whose company_id column is rewritten during a merge
CHILD_MODELS = {
    "product_count": ProductModel,
    "order_count": OrderModel,
    "user_count": UserModel,
    "payment_count": PaymentModel,
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MergedPrimary(_CamelModel):
    company_id: int
    company: str | None = None


class MergedCompany(_CamelModel):
    """One duplicate and the child rows that moved (or would move) to the primary."""

    id: int
    name: str | None = None
    product_count: int = 0
    order_count: int = 0
    user_count: int = 0
    payment_count: int = 0


class StoreMergeResult(_CamelModel):
    primary: MergedPrimary
    merged: list[MergedCompany] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    dry_run: bool = True


class CompanyMerger:
    """Merges duplicate storefront companies into a primary company.

    Args:
        session_factory: async_sessionmaker producing AsyncSession instances.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def merge_companies(
        self,
        primary_id: int,
        duplicate_ids: Sequence[int],
        dry_run: bool = True,
    ) -> StoreMergeResult:
        """Merge duplicates into primary_id.

        In dry-run mode the child row counts are computed and nothing is
        written. A duplicate equal to the primary, or missing from the
        store, is reported in ``errors`` and skipped.

        Raises:
            LookupError: If the primary company does not exist.
        """
        async with self._session_factory() as session:
            async with session.begin():
                primary = await session.get(CompanyModel, primary_id)
                if primary is None:
                    raise LookupError(f"Primary company {primary_id} not found")

                result = StoreMergeResult(
                    primary=MergedPrimary(company_id=primary.company_id, company=primary.company),
                    dry_run=dry_run,
                )

                for duplicate_id in dict.fromkeys(duplicate_ids):
                    if duplicate_id == primary_id:
                        result.errors.append(f"Cannot merge company {duplicate_id} with itself")
                        continue

                    duplicate = await session.get(CompanyModel, duplicate_id)
                    if duplicate is None:
                        result.errors.append(f"Company {duplicate_id} not found")
                        continue

                    counts = {
                        key: await self._count_children(session, model, duplicate_id)
                        for key, model in CHILD_MODELS.items()
                    }

                    if not dry_run:
                        for model in CHILD_MODELS.values():
                            await session.execute(
                                update(model)
                                .where(model.company_id == duplicate_id)
                                .values(company_id=primary_id)
                            )
                        await session.execute(
                            delete(CompanyModel).where(CompanyModel.company_id == duplicate_id)
                        )

                    result.merged.append(
                        MergedCompany(id=duplicate_id, name=duplicate.company, **counts)
                    )

        logger.info(
            "source.companies_merged",
            primary_id=primary_id,
            merged=[m.id for m in result.merged],
            errors=len(result.errors),
            dry_run=dry_run,
        )
        return result

    @staticmethod
    async def _count_children(session: AsyncSession, model: type, company_id: int) -> int:
        stmt = select(func.count()).select_from(model).where(model.company_id == company_id)
        return int((await session.execute(stmt)).scalar_one())
