"""Storefront (source) data access.

Provides read access to companies and admin users with stable pagination,
and the same-store merge utility used by duplicate cleanup.
"""

from src.hubsync.source.merge import CompanyMerger, StoreMergeResult
from src.hubsync.source.reader import SourceReader
from src.hubsync.source.schemas import (
    CompanyFilter,
    CompanyStatus,
    SourceCompany,
    SourceUser,
)

__all__ = [
    "CompanyFilter",
    "CompanyMerger",
    "CompanyStatus",
    "SourceCompany",
    "SourceReader",
    "SourceUser",
    "StoreMergeResult",
]
