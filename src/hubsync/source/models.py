"""Storefront persistence models -- the CS-Cart tables this service reads and merges.

Five SQLAlchemy models using SourceBase:
- CompanyModel: Vendor companies (the records synced to HubSpot companies)
- ProductModel: Products owned by a company (aggregated into counts)
- OrderModel: Orders placed with a company (aggregated into counts)
- UserModel: Storefront users; admin/vendor users become HubSpot contacts
- PaymentModel: Payment methods configured by a company

The schema is owned by the storefront. We never create or migrate these
tables outside of tests.
"""

from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.hubsync.core.database import SourceBase


class CompanyModel(SourceBase):
    """Vendor company. `company_id` is the external id correlated into HubSpot."""

    __tablename__ = "cscart_companies"

    company_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str | None] = mapped_column(String(128), nullable=True)
    url: Mapped[str | None] = mapped_column(String(128), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(128), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(64), nullable=True)
    state: Mapped[str | None] = mapped_column(String(32), nullable=True)
    country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    zipcode: Mapped[str | None] = mapped_column(String(16), nullable=True)
    status: Mapped[str] = mapped_column(String(1), nullable=False, default="A")
    timestamp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ProductModel(SourceBase):
    """Catalog product. status: A=active, D=disabled/draft, H=hidden."""

    __tablename__ = "cscart_products"

    product_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    status: Mapped[str] = mapped_column(String(1), nullable=False, default="A")


class OrderModel(SourceBase):
    """Storefront order. Status letters follow CS-Cart (P=processed, C=complete, ...)."""

    __tablename__ = "cscart_orders"

    order_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    status: Mapped[str] = mapped_column(String(1), nullable=False, default="O")


class UserModel(SourceBase):
    """Storefront user. user_type: A=admin, V=vendor, C=customer."""

    __tablename__ = "cscart_users"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_login: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(128), nullable=True)
    firstname: Mapped[str | None] = mapped_column(String(128), nullable=True)
    lastname: Mapped[str | None] = mapped_column(String(128), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(128), nullable=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    user_type: Mapped[str] = mapped_column(String(1), nullable=False, default="C")
    status: Mapped[str] = mapped_column(String(1), nullable=False, default="A")
    last_login: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class PaymentModel(SourceBase):
    """Payment method configured by a company."""

    __tablename__ = "cscart_payments"

    payment_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0, index=True)
    processor: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(1), nullable=False, default="A")
