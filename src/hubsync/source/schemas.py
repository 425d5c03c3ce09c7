"""Pydantic schemas for storefront records read by the sync.

- CompanyStatus: vendor status (A/D/S plus the P/N states of new vendors)
- SourceCompany: immutable company snapshot with derived aggregate counts
- SourceUser: active admin/vendor user linked to a company
- CompanyFilter: paging and filtering options for SourceReader.fetch_companies
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CompanyStatus(str, Enum):
    """Vendor company status as stored by the storefront."""

    ACTIVE = "A"
    DRAFT = "D"
    SUSPENDED = "S"
    PENDING = "P"
    NEW = "N"


class SourceCompany(BaseModel):
    """Snapshot of one storefront company. Never mutated during a sync pass."""

    model_config = ConfigDict(frozen=True)

    company_id: int
    company: str | None = None
    email: str | None = None
    url: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    zipcode: str | None = None
    status: CompanyStatus = CompanyStatus.ACTIVE
    timestamp: int | None = None
    product_count_active: int = 0
    product_count_draft: int = 0
    order_count: int = 0
    has_paypal: bool = False
    has_stripe: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def _blank_status_is_active(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return CompanyStatus.ACTIVE
        return value


class SourceUser(BaseModel):
    """Active admin or vendor user belonging to a company."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    user_login: str | None = None
    email: str | None = None
    firstname: str | None = None
    lastname: str | None = None
    phone: str | None = None
    company_id: int
    last_login: int | None = None


class CompanyFilter(BaseModel):
    """Options for SourceReader.fetch_companies.

    company_ids=None means every company; an empty list means none.
    """

    page_size: int = Field(default=100, gt=0)
    company_ids: list[int] | None = None
    status: CompanyStatus | None = None
    include_counts: bool = True
