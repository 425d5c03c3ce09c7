"""CRM integration layer -- HubSpot as the sync target.

Provides the abstract CRMTarget interface with the shared upsert/associate
semantics, the HubSpotClient implementation, the storefront -> HubSpot
field mapper, and the HubSpot-side merge/cleanup utilities.
"""

from src.hubsync.crm.adapter import CRMTarget, SearchPage, UpsertResult
from src.hubsync.crm.field_mapping import (
    COMPANY_EXTERNAL_ID,
    CONTACT_EXTERNAL_ID,
    CUSTOM_PROPERTIES,
    MappingError,
    contact_display_name,
    map_company,
    map_user,
)
from src.hubsync.crm.hubspot import HubSpotClient, HubSpotError, HubSpotNotFoundError

__all__ = [
    "COMPANY_EXTERNAL_ID",
    "CONTACT_EXTERNAL_ID",
    "CUSTOM_PROPERTIES",
    "CRMTarget",
    "HubSpotClient",
    "HubSpotError",
    "HubSpotNotFoundError",
    "MappingError",
    "SearchPage",
    "UpsertResult",
    "contact_display_name",
    "map_company",
    "map_user",
]
