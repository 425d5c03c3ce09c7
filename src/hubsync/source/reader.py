"""Source reader -- paginated, read-only access to storefront companies and admin users.

Pages with LIMIT/OFFSET ordered by the primary key so that a run sees every
row exactly once while the table is not being rewritten underneath it.
Aggregate counts are computed in the same statement through grouped LEFT
JOIN subqueries; they are consistent with each other inside one page but a
caller must not assume atomicity across pages.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any

import structlog
from pydantic import ValidationError
from sqlalchemy import Integer, Select, case, cast, func, literal, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.hubsync.source.models import (
    CompanyModel,
    OrderModel,
    PaymentModel,
    ProductModel,
    UserModel,
)
from src.hubsync.source.schemas import CompanyFilter, SourceCompany, SourceUser

logger = structlog.get_logger(__name__)

# Bounds the size of generated IN (...) lists
IN_CLAUSE_LIMIT = 500

ADMIN_USER_TYPES = ("A", "V")
ACTIVE_STATUS = "A"

_COMPANY_COLUMNS = (
    CompanyModel.company_id,
    CompanyModel.company,
    CompanyModel.email,
    CompanyModel.url,
    CompanyModel.phone,
    CompanyModel.address,
    CompanyModel.city,
    CompanyModel.state,
    CompanyModel.country,
    CompanyModel.zipcode,
    CompanyModel.status,
    CompanyModel.timestamp,
)


def _chunks(values: Sequence[int], size: int) -> Iterator[list[int]]:
    for start in range(0, len(values), size):
        yield list(values[start:start + size])


async def paginate(session: AsyncSession, stmt: Select[Any], page_size: int) -> list[dict[str, Any]]:
    """Run an ordered statement page by page until a short page is returned."""
    rows: list[dict[str, Any]] = []
    offset = 0
    while True:
        result = await session.execute(stmt.limit(page_size).offset(offset))
        page = [dict(row) for row in result.mappings().all()]
        rows.extend(page)
        if len(page) < page_size:
            break
        offset += page_size
    return rows


class SourceReader:
    """Read access to the storefront database.

    Args:
        session_factory: async_sessionmaker producing AsyncSession instances.
        order_statuses: Order status letters counted into order_count.
        page_size: Default page size for user reads.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        order_statuses: Sequence[str] = ("P", "C"),
        page_size: int = 100,
    ) -> None:
        self._session_factory = session_factory
        self._order_statuses = list(order_statuses)
        self._page_size = page_size

    # ── Companies ───────────────────────────────────────────────────────────

    def _company_statement(self, flt: CompanyFilter) -> Select[Any]:
        if not flt.include_counts:
            stmt = select(
                *_COMPANY_COLUMNS,
                literal(0).label("product_count_active"),
                literal(0).label("product_count_draft"),
                literal(0).label("order_count"),
                literal(False).label("has_paypal"),
                literal(False).label("has_stripe"),
            )
        else:
            products = (
                select(
                    ProductModel.company_id.label("company_id"),
                    func.sum(case((ProductModel.status == "A", 1), else_=0)).label("active"),
                    func.sum(case((ProductModel.status == "D", 1), else_=0)).label("draft"),
                )
                .group_by(ProductModel.company_id)
                .subquery("p")
            )
            orders = (
                select(
                    OrderModel.company_id.label("company_id"),
                    func.count().label("orders"),
                )
                .where(OrderModel.status.in_(self._order_statuses))
                .group_by(OrderModel.company_id)
                .subquery("o")
            )
            processor = func.lower(func.coalesce(PaymentModel.processor, ""))
            payments = (
                select(
                    PaymentModel.company_id.label("company_id"),
                    func.max(case((processor.like("%paypal%"), 1), else_=0)).label("paypal"),
                    func.max(case((processor.like("%stripe%"), 1), else_=0)).label("stripe"),
                )
                .where(PaymentModel.status == ACTIVE_STATUS)
                .group_by(PaymentModel.company_id)
                .subquery("pm")
            )
            stmt = (
                select(
                    *_COMPANY_COLUMNS,
                    cast(func.coalesce(products.c.active, 0), Integer).label("product_count_active"),
                    cast(func.coalesce(products.c.draft, 0), Integer).label("product_count_draft"),
                    cast(func.coalesce(orders.c.orders, 0), Integer).label("order_count"),
                    cast(func.coalesce(payments.c.paypal, 0), Integer).label("has_paypal"),
                    cast(func.coalesce(payments.c.stripe, 0), Integer).label("has_stripe"),
                )
                .select_from(CompanyModel)
                .outerjoin(products, products.c.company_id == CompanyModel.company_id)
                .outerjoin(orders, orders.c.company_id == CompanyModel.company_id)
                .outerjoin(payments, payments.c.company_id == CompanyModel.company_id)
            )

        if flt.status is not None:
            stmt = stmt.where(CompanyModel.status == flt.status.value)
        return stmt.order_by(CompanyModel.company_id.asc())

    async def fetch_companies(self, flt: CompanyFilter) -> list[SourceCompany]:
        """Fetch every company matching the filter, ascending by company_id.

        An empty (non-None) id subset returns an empty list without querying.
        """
        if flt.company_ids is not None and not flt.company_ids:
            return []

        base = self._company_statement(flt)
        rows: list[dict[str, Any]] = []

        async with self._session_factory() as session:
            if flt.company_ids is None:
                rows = await paginate(session, base, flt.page_size)
            else:
                ids = sorted(set(flt.company_ids))
                for chunk in _chunks(ids, IN_CLAUSE_LIMIT):
                    stmt = base.where(CompanyModel.company_id.in_(chunk))
                    rows.extend(await paginate(session, stmt, flt.page_size))

        companies: list[SourceCompany] = []
        for row in rows:
            try:
                companies.append(SourceCompany(**row))
            except ValidationError as exc:
                logger.warning(
                    "source.company_skipped",
                    company_id=row.get("company_id"),
                    status=row.get("status"),
                    error=str(exc),
                )
        logger.info(
            "source.companies_fetched",
            count=len(companies),
            filtered=flt.company_ids is not None,
            status=flt.status.value if flt.status else None,
        )
        return companies

    # ── Users ───────────────────────────────────────────────────────────────

    async def fetch_users_for_companies(
        self, company_ids: Sequence[int], page_size: int | None = None
    ) -> list[SourceUser]:
        """Fetch active admin/vendor users owned by the given companies.

        Returns an empty list for an empty id list. Ordered by user_id.
        """
        if not company_ids:
            return []

        size = page_size or self._page_size
        ids = sorted(set(company_ids))
        base = (
            select(
                UserModel.user_id,
                UserModel.user_login,
                UserModel.email,
                UserModel.firstname,
                UserModel.lastname,
                UserModel.phone,
                UserModel.company_id,
                UserModel.last_login,
            )
            .where(
                UserModel.status == ACTIVE_STATUS,
                UserModel.user_type.in_(ADMIN_USER_TYPES),
            )
            .order_by(UserModel.user_id.asc())
        )

        rows: list[dict[str, Any]] = []
        async with self._session_factory() as session:
            for chunk in _chunks(ids, IN_CLAUSE_LIMIT):
                stmt = base.where(UserModel.company_id.in_(chunk))
                rows.extend(await paginate(session, stmt, size))

        users = sorted((SourceUser(**row) for row in rows), key=lambda u: u.user_id)
        logger.info("source.users_fetched", count=len(users), companies=len(ids))
        return users
