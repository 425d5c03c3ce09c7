"""Shared test fixtures.

Provides:
- FakeCRM: in-memory CRMTarget with call counters and injectable failures
- In-memory SQLite storefront (aiosqlite) with the storefront tables created
- Row builders for companies, users, products, orders and payments
"""

from __future__ import annotations

import itertools
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.hubsync.core.database import SourceBase, get_session_factory
from src.hubsync.crm.adapter import CRMTarget, SearchPage
from src.hubsync.crm.hubspot import HubSpotError, HubSpotNotFoundError
from src.hubsync.source.models import (
    CompanyModel,
    OrderModel,
    PaymentModel,
    ProductModel,
    UserModel,
)


# ── Fake CRM ─────────────────────────────────────────────────────────────────


class FakeCRM(CRMTarget):
    """In-memory HubSpot stand-in.

    Records live in ``objects[object_type][id] = properties``. Set
    ``fail_create`` to a set of ``(object_type, external_id)`` pairs to make
    those creates raise, or ``schema_error`` to make ensure_schema raise.
    """

    def __init__(self) -> None:
        self.objects: dict[str, dict[str, dict[str, Any]]] = {"companies": {}, "contacts": {}}
        self.associations: list[tuple[str, str]] = []
        self.archived: list[str] = []
        self.calls: dict[str, int] = {
            "ensure_schema": 0,
            "search": 0,
            "create": 0,
            "update": 0,
            "create_association": 0,
        }
        self.fail_create: set[tuple[str, int]] = set()
        self.fail_search_terms: set[str] = set()
        self.schema_error: Exception | None = None
        self.closed = False
        self._ids = itertools.count(1001)

    def add(self, object_type: str, properties: dict[str, Any]) -> str:
        """Seed a record directly and return its id."""
        object_id = str(next(self._ids))
        self.objects[object_type][object_id] = dict(properties)
        return object_id

    async def ensure_schema(self) -> None:
        self.calls["ensure_schema"] += 1
        if self.schema_error is not None:
            raise self.schema_error

    async def search(self, object_type: str, property_name: str, value: Any) -> dict[str, Any] | None:
        self.calls["search"] += 1
        for object_id, props in self.objects[object_type].items():
            if property_name in props and str(props[property_name]) == str(value):
                return {"id": object_id, "properties": dict(props)}
        return None

    async def search_objects(
        self,
        object_type: str,
        filters: list[dict[str, Any]],
        properties: list[str],
        limit: int = 100,
        after: str | None = None,
    ) -> SearchPage:
        for f in filters:
            if f.get("value") in self.fail_search_terms:
                raise HubSpotError(500, f"search failed for {f['value']}")

        matches = [
            {"id": object_id, "properties": dict(props)}
            for object_id, props in self.objects[object_type].items()
            if all(self._matches(props, f) for f in filters)
        ]
        start = int(after or 0)
        page = matches[start:start + limit]
        next_after = str(start + limit) if start + limit < len(matches) else None
        return SearchPage(results=page, after=next_after)

    @staticmethod
    def _matches(props: dict[str, Any], f: dict[str, Any]) -> bool:
        name, operator = f["propertyName"], f["operator"]
        if operator == "HAS_PROPERTY":
            return props.get(name) not in (None, "")
        if operator == "NOT_HAS_PROPERTY":
            return props.get(name) in (None, "")
        if operator == "EQ":
            return str(props.get(name)) == str(f["value"])
        if operator == "CONTAINS_TOKEN":
            return str(f["value"]).lower() in str(props.get(name, "")).lower()
        raise AssertionError(f"unsupported operator {operator}")

    async def create(self, object_type: str, properties: dict[str, Any]) -> str:
        self.calls["create"] += 1
        external = properties.get("cscart_company_id", properties.get("cscart_user_id"))
        if (object_type, external) in self.fail_create:
            raise HubSpotError(400, f"create rejected for {external}", {"category": "VALIDATION_ERROR"})
        return self.add(object_type, properties)

    async def update(self, object_type: str, object_id: str, properties: dict[str, Any]) -> None:
        self.calls["update"] += 1
        self.objects[object_type][object_id].update(properties)

    async def create_association(self, contact_id: str, company_id: str) -> None:
        self.calls["create_association"] += 1
        self.associations.append((contact_id, company_id))

    async def archive(self, object_id: str, object_type: str = "companies") -> None:
        if object_id not in self.objects[object_type]:
            raise HubSpotNotFoundError(404, "resource not found")
        del self.objects[object_type][object_id]
        self.archived.append(object_id)

    async def get_by_id(
        self, object_id: str, object_type: str = "companies", properties: list[str] | None = None
    ) -> dict[str, Any]:
        props = self.objects[object_type].get(str(object_id))
        if props is None:
            raise HubSpotNotFoundError(404, "resource not found")
        return {"id": str(object_id), "properties": dict(props)}

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_crm() -> FakeCRM:
    return FakeCRM()


# ── Storefront database ──────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory storefront with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SourceBase.metadata.create_all)

    yield get_session_factory(engine)

    await engine.dispose()


def company_row(company_id: int, name: str | None = None, **overrides) -> CompanyModel:
    values: dict[str, Any] = {
        "company_id": company_id,
        "company": name if name is not None else f"Company {company_id}",
        "email": f"shop{company_id}@example.com",
        "status": "A",
        "timestamp": 1_700_000_000,
    }
    values.update(overrides)
    return CompanyModel(**values)


def user_row(user_id: int, company_id: int, **overrides) -> UserModel:
    values: dict[str, Any] = {
        "user_id": user_id,
        "company_id": company_id,
        "user_login": f"admin{user_id}",
        "email": f"admin{user_id}@example.com",
        "firstname": "Ada",
        "lastname": "Admin",
        "user_type": "V",
        "status": "A",
        "last_login": 0,
    }
    values.update(overrides)
    return UserModel(**values)


def product_row(product_id: int, company_id: int, status: str = "A") -> ProductModel:
    return ProductModel(product_id=product_id, company_id=company_id, status=status)


def order_row(order_id: int, company_id: int, status: str = "C") -> OrderModel:
    return OrderModel(order_id=order_id, company_id=company_id, status=status)


def payment_row(payment_id: int, company_id: int, processor: str, status: str = "A") -> PaymentModel:
    return PaymentModel(payment_id=payment_id, company_id=company_id, processor=processor, status=status)


async def seed(factory: async_sessionmaker[AsyncSession], *rows) -> None:
    """Insert rows in one transaction."""
    async with factory() as session:
        async with session.begin():
            session.add_all(rows)
