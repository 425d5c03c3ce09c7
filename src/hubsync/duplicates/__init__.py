"""Duplicate company detection and merge across the storefront and HubSpot.

Exports:
    normalize_company_name: Grouping key (case, spacing, legal suffix).
    DuplicateFinder: Efficient and targeted scan strategies.
    merge_duplicates: Same-system merge dispatch; mixed selections are rejected.
"""

from src.hubsync.duplicates.finder import DuplicateFinder, group_by_name
from src.hubsync.duplicates.merge import MergeError, MergeOutcome, merge_duplicates, merge_type_for
from src.hubsync.duplicates.normalize import normalize_company_name
from src.hubsync.duplicates.schemas import (
    CompanySource,
    DuplicateCompany,
    DuplicateGroup,
    MergeRequest,
    ScanMethod,
)

__all__ = [
    "CompanySource",
    "DuplicateCompany",
    "DuplicateFinder",
    "DuplicateGroup",
    "MergeError",
    "MergeOutcome",
    "MergeRequest",
    "ScanMethod",
    "group_by_name",
    "merge_duplicates",
    "merge_type_for",
    "normalize_company_name",
]
