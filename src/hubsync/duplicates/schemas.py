"""Pydantic schemas for duplicate detection and merge requests."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.hubsync.source.schemas import SourceCompany


class CompanySource(str, Enum):
    CSCART = "cs-cart"
    HUBSPOT = "hubspot"


class ScanMethod(str, Enum):
    EFFICIENT = "efficient"
    TARGETED = "targeted"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DuplicateCompany(_CamelModel):
    """A company from either system, in the shape shown to the operator.

    ``id`` is prefixed with the source (``cs_<companyId>`` / ``hs_<hubspotId>``)
    so members from both systems can share one list.
    """

    id: str
    name: str = ""
    source: CompanySource
    cscart_id: int | None = Field(default=None, alias="csCartId")
    hubspot_id: str | None = Field(default=None, alias="hubSpotId")
    email: str | None = None
    phone: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    domain: str | None = None
    product_count: int = 0
    order_count: int = 0

    @classmethod
    def from_source(cls, company: SourceCompany) -> DuplicateCompany:
        return cls(
            id=f"cs_{company.company_id}",
            name=company.company or "",
            source=CompanySource.CSCART,
            cscart_id=company.company_id,
            email=company.email,
            phone=company.phone,
            city=company.city,
            state=company.state,
            country=company.country,
            domain=company.url,
            product_count=company.product_count_active,
            order_count=company.order_count,
        )

    @classmethod
    def from_crm(cls, record: dict[str, Any]) -> DuplicateCompany:
        props = record.get("properties") or {}
        return cls(
            id=f"hs_{record['id']}",
            name=props.get("name") or "",
            source=CompanySource.HUBSPOT,
            hubspot_id=str(record["id"]),
            email=props.get("email") or "",
            phone=props.get("phone") or "",
            city=props.get("city") or "",
            state=props.get("state") or "",
            country=props.get("country") or "",
            domain=props.get("domain") or "",
        )


class DuplicateGroup(_CamelModel):
    normalized_name: str
    companies: list[DuplicateCompany]
    count: int
    sources: list[CompanySource]

    @classmethod
    def of(cls, normalized_name: str, companies: list[DuplicateCompany]) -> DuplicateGroup:
        return cls(
            normalized_name=normalized_name,
            companies=companies,
            count=len(companies),
            sources=list(dict.fromkeys(c.source for c in companies)),
        )


class MergeRequest(_CamelModel):
    """Body of a duplicate merge call. Merges default to dry-run."""

    primary_company: DuplicateCompany | None = None
    duplicate_companies: list[DuplicateCompany] = Field(default_factory=list)
    dry_run: bool = True
