"""Company name normalization used as the duplicate grouping key.

Heuristic: two names that differ only in case, spacing, or a trailing
legal-entity suffix share a key. It produces false positives and misses
spelling variants; callers treat groups as candidates for review.
"""

import re

_WHITESPACE = re.compile(r"\s+")
_LEGAL_SUFFIX = re.compile(r"\b(inc|corp|corporation|ltd|limited|llc|co|company)\b\.?$")


def normalize_company_name(name: str | None) -> str:
    """Lower-case, collapse whitespace, and drop one trailing legal suffix.

    >>> normalize_company_name("  Acme   Inc. ")
    'acme'
    >>> normalize_company_name("Acme, LLC")
    'acme'
    """
    if not name:
        return ""
    key = _WHITESPACE.sub(" ", name.lower()).strip()
    key = _LEGAL_SUFFIX.sub("", key)
    return key.rstrip(" ,.").strip()
