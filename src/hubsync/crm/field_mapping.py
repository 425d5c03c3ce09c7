"""Storefront -> HubSpot property mapping and custom property definitions.

Defines:
- COMPANY_EXTERNAL_ID / CONTACT_EXTERNAL_ID: correlation property names
- CUSTOM_PROPERTIES: the custom HubSpot properties ensure_schema() guarantees
- map_company(): SourceCompany -> HubSpot company properties
- map_user(): SourceUser (+ owner company) -> HubSpot contact properties
- contact_display_name(): convenience full name for events and logs

Pure functions. Blank values never reach HubSpot: a missing, empty or
whitespace-only optional field is omitted from the property dict entirely.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from src.hubsync.source.schemas import SourceCompany, SourceUser

COMPANY_EXTERNAL_ID = "cscart_company_id"
CONTACT_EXTERNAL_ID = "cscart_user_id"

CONTACT_JOB_TITLE = "Admin"


class MappingError(ValueError):
    """A required source field is missing."""


# ── Custom Property Definitions ────────────────────────────────────────────
# object type -> list of property definitions (HubSpot properties API shape)

CUSTOM_PROPERTIES: dict[str, list[dict[str, Any]]] = {
    "companies": [
        {
            "name": COMPANY_EXTERNAL_ID,
            "label": "CS-Cart Company ID",
            "type": "number",
            "fieldType": "number",
            "groupName": "companyinformation",
            "description": "External CS-Cart company_id",
        },
        {
            "name": "cscart_product_count",
            "label": "CS-Cart Product Count",
            "type": "number",
            "fieldType": "number",
            "groupName": "companyinformation",
            "description": "Number of active products in CS-Cart",
        },
        {
            "name": "cscart_draft_product_count",
            "label": "CS-Cart Draft Product Count",
            "type": "number",
            "fieldType": "number",
            "groupName": "companyinformation",
            "description": "Number of draft/disabled products in CS-Cart",
        },
        {
            "name": "cscart_order_count",
            "label": "CS-Cart Order Count",
            "type": "number",
            "fieldType": "number",
            "groupName": "companyinformation",
            "description": "Number of processed/completed orders in CS-Cart",
        },
        {
            "name": "cscart_email",
            "label": "CS-Cart Email",
            "type": "string",
            "fieldType": "text",
            "groupName": "companyinformation",
            "description": "Company email from CS-Cart",
        },
        {
            "name": "cscart_status",
            "label": "CS-Cart Status",
            "type": "enumeration",
            "fieldType": "select",
            "groupName": "companyinformation",
            "description": "Company status from CS-Cart (A=Active, D=Draft, S=Suspended, P=Pending, N=New)",
            "options": [
                {"label": "Active", "value": "A"},
                {"label": "Draft", "value": "D"},
                {"label": "Suspended", "value": "S"},
                {"label": "Pending", "value": "P"},
                {"label": "New", "value": "N"},
            ],
        },
        {
            "name": "cscart_payment_methods",
            "label": "CS-Cart Payment Methods",
            "type": "string",
            "fieldType": "text",
            "groupName": "companyinformation",
            "description": "Available payment methods (PayPal, Stripe)",
        },
    ],
    "contacts": [
        {
            "name": CONTACT_EXTERNAL_ID,
            "label": "CS-Cart User ID",
            "type": "number",
            "fieldType": "number",
            "groupName": "contactinformation",
            "description": "External CS-Cart user_id",
        },
        {
            "name": "cscart_last_login",
            "label": "CS-Cart Last Login",
            "type": "datetime",
            "fieldType": "date",
            "groupName": "contactinformation",
            "description": "Last login time from CS-Cart",
        },
    ],
}


# ── Conversion Functions ───────────────────────────────────────────────────


def blank_to_none(value: Any) -> str | None:
    """Return the trimmed string, or None for None/empty/whitespace-only input."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _compact(properties: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in properties.items() if value is not None}


def epoch_to_iso(epoch_seconds: int | None) -> str | None:
    """Convert epoch seconds to an ISO-8601 UTC timestamp; 0/None means never."""
    if not epoch_seconds or epoch_seconds <= 0:
        return None
    moment = datetime.fromtimestamp(int(epoch_seconds), tz=timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


def payment_methods(company: SourceCompany) -> str | None:
    methods = []
    if company.has_paypal:
        methods.append("PayPal")
    if company.has_stripe:
        methods.append("Stripe")
    return ", ".join(methods) or None


def map_company(company: SourceCompany) -> dict[str, Any]:
    """Convert a storefront company into HubSpot company properties.

    The name is copied verbatim and is required.

    Raises:
        MappingError: If the company has no name.
    """
    if company.company is None or not company.company.strip():
        raise MappingError(f"Company {company.company_id} has no name")

    return _compact({
        "name": company.company,
        "domain": blank_to_none(company.url),
        "phone": blank_to_none(company.phone),
        "address": blank_to_none(company.address),
        "city": blank_to_none(company.city),
        "state": blank_to_none(company.state),
        "country": blank_to_none(company.country),
        "zip": blank_to_none(company.zipcode),
        "cscart_email": blank_to_none(company.email),
        COMPANY_EXTERNAL_ID: int(company.company_id),
        "cscart_product_count": int(company.product_count_active),
        "cscart_draft_product_count": int(company.product_count_draft),
        "cscart_order_count": int(company.order_count),
        "cscart_status": company.status.value,
        "cscart_payment_methods": payment_methods(company),
    })


def map_user(user: SourceUser, company: SourceCompany | None = None) -> dict[str, Any]:
    """Convert a storefront admin user into HubSpot contact properties.

    The owner company's display name is propagated when the owner is known.
    """
    return _compact({
        "email": blank_to_none(user.email),
        "firstname": blank_to_none(user.firstname),
        "lastname": blank_to_none(user.lastname),
        "phone": blank_to_none(user.phone),
        "jobtitle": CONTACT_JOB_TITLE,
        "company": blank_to_none(company.company) if company else None,
        CONTACT_EXTERNAL_ID: int(user.user_id),
        "cscart_last_login": epoch_to_iso(user.last_login),
    })


def contact_display_name(user: SourceUser) -> str:
    """First and last name joined by one space, falling back to login, email, then a placeholder."""
    full_name = " ".join(
        part for part in (blank_to_none(user.firstname), blank_to_none(user.lastname)) if part
    )
    return full_name or blank_to_none(user.user_login) or blank_to_none(user.email) or "Admin User"
