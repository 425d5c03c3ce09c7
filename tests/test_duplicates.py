"""Tests for duplicate detection and merge dispatch.

Name normalization is a heuristic, so these tests pin the intended
groupings rather than claiming semantic equivalence.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from conftest import FakeCRM
from src.hubsync.duplicates import finder as finder_module
from src.hubsync.duplicates.finder import DuplicateFinder, group_by_name
from src.hubsync.duplicates.merge import MergeError, merge_duplicates, merge_type_for
from src.hubsync.duplicates.normalize import normalize_company_name
from src.hubsync.duplicates.schemas import CompanySource, DuplicateCompany, MergeRequest
from src.hubsync.source.merge import StoreMergeResult
from src.hubsync.source.schemas import SourceCompany


def _source(company_id: int, name: str) -> SourceCompany:
    return SourceCompany(company_id=company_id, company=name, product_count_active=company_id)


def _cs(company_id: int) -> DuplicateCompany:
    return DuplicateCompany(id=f"cs_{company_id}", name="x", source=CompanySource.CSCART, cscart_id=company_id)


def _hs(hubspot_id: str) -> DuplicateCompany:
    return DuplicateCompany(id=f"hs_{hubspot_id}", name="x", source=CompanySource.HUBSPOT, hubspot_id=hubspot_id)


# ── Normalization ────────────────────────────────────────────────────────────


class TestNormalizeCompanyName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Acme Inc", "acme"),
            ("ACME", "acme"),
            ("  Acme   Inc.  ", "acme"),
            ("Acme, LLC", "acme"),
            ("Beta Corporation", "beta"),
            ("Gamma Company", "gamma"),
            ("Incredible Widgets", "incredible widgets"),
            ("Co-op Market", "co-op market"),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_company_name(raw) == expected

    def test_only_one_trailing_suffix_is_removed(self):
        assert normalize_company_name("Acme Co Ltd") == "acme co"

    def test_empty(self):
        assert normalize_company_name(None) == ""
        assert normalize_company_name("   ") == ""


def test_groups_by_normalized_name():
    companies = [DuplicateCompany.from_source(_source(i, n)) for i, n in enumerate(["Acme Inc", "ACME", "Beta LLC"], 1)]

    groups = group_by_name(companies)

    assert len(groups) == 1
    assert groups[0].normalized_name == "acme"
    assert groups[0].count == 2
    assert [c.id for c in groups[0].companies] == ["cs_1", "cs_2"]


# ── Efficient scan ───────────────────────────────────────────────────────────


class TestFindEfficient:
    """Unsynced HubSpot companies are grouped with every storefront company."""

    async def test_groups_across_systems(self, fake_crm: FakeCRM, monkeypatch):
        monkeypatch.setattr(finder_module, "SEARCH_PAGE_LIMIT", 2)
        acme_hs = fake_crm.add("companies", {"name": "Acme, Inc."})
        fake_crm.add("companies", {"name": "Acme Inc", "cscart_company_id": 1})  # already synced
        fake_crm.add("companies", {"name": "Gamma Ltd"})
        fake_crm.add("companies", {"name": "gamma"})
        fake_crm.add("companies", {"name": "Gamma"})
        fake_crm.add("companies", {"name": ""})

        groups = await DuplicateFinder(fake_crm).find_efficient(
            [_source(1, "Acme Inc"), _source(2, "ACME"), _source(3, "Beta LLC")]
        )

        assert [(g.normalized_name, g.count) for g in groups] == [("acme", 3), ("gamma", 3)]
        acme = groups[0]
        assert acme.sources == [CompanySource.CSCART, CompanySource.HUBSPOT]
        hs_member = acme.companies[-1]
        assert hs_member.id == f"hs_{acme_hs}"
        assert hs_member.hubspot_id == acme_hs
        assert hs_member.cscart_id is None

    async def test_search_failure_propagates(self, fake_crm: FakeCRM):
        fake_crm.search_objects = AsyncMock(side_effect=RuntimeError("search down"))

        with pytest.raises(RuntimeError):
            await DuplicateFinder(fake_crm).find_efficient([_source(1, "Acme")])

    def test_group_serializes_camel_case(self):
        group = group_by_name([DuplicateCompany.from_source(_source(1, "A")), _hs("9").model_copy(update={"name": "a"})])[0]
        data = group.model_dump(mode="json", by_alias=True)

        assert data["normalizedName"] == "a"
        assert data["companies"][0]["csCartId"] == 1
        assert data["companies"][1]["hubSpotId"] == "9"
        assert data["sources"] == ["cs-cart", "hubspot"]


# ── Targeted scan ────────────────────────────────────────────────────────────


class TestFindTargeted:
    """Per-company token search keeps exact normalized matches only."""

    async def test_matches_and_dedupes(self, fake_crm: FakeCRM):
        exact = fake_crm.add("companies", {"name": "ACME"})
        dotted = fake_crm.add("companies", {"name": "Acme Inc."})
        fake_crm.add("companies", {"name": "Acme Widgets"})
        fake_crm.add("companies", {"name": "Acme Inc", "cscart_company_id": 1})

        groups = await DuplicateFinder(fake_crm, batch_delay=0).find_targeted(
            [_source(1, "Acme Inc"), _source(2, "ACME"), _source(3, "Nobody")], batch_size=2
        )

        assert len(groups) == 1
        group = groups[0]
        assert group.count == 3
        assert [c.id for c in group.companies] == ["cs_1", f"hs_{dotted}", f"hs_{exact}"]

    async def test_search_failure_skips_only_that_company(self, fake_crm: FakeCRM):
        fake_crm.add("companies", {"name": "Beta"})
        fake_crm.fail_search_terms.add("Broken Co")

        groups = await DuplicateFinder(fake_crm, batch_delay=0).find_targeted(
            [_source(1, "Broken Co"), _source(2, "Beta LLC")]
        )

        assert [g.normalized_name for g in groups] == ["beta"]

    async def test_sorted_by_group_size(self, fake_crm: FakeCRM):
        fake_crm.add("companies", {"name": "Solo"})
        fake_crm.add("companies", {"name": "Pair"})
        fake_crm.add("companies", {"name": "PAIR"})

        groups = await DuplicateFinder(fake_crm, batch_delay=0).find_targeted(
            [_source(1, "Solo"), _source(2, "Pair")]
        )

        assert [g.count for g in groups] == [3, 2]


# ── Merge dispatch ───────────────────────────────────────────────────────────


class TestMergeDispatch:
    def test_mixed_sources_rejected(self):
        request = MergeRequest(primary_company=_cs(1), duplicate_companies=[_hs("9")])
        with pytest.raises(MergeError, match="not supported"):
            merge_type_for(request)

    def test_requires_primary_and_duplicates(self):
        with pytest.raises(MergeError, match="primaryCompany"):
            merge_type_for(MergeRequest(duplicate_companies=[_cs(2)]))
        with pytest.raises(MergeError, match="duplicateCompanies"):
            merge_type_for(MergeRequest(primary_company=_cs(1)))

    async def test_storefront_merge_uses_company_merger(self, fake_crm: FakeCRM):
        merger = AsyncMock()
        merger.merge_companies.return_value = StoreMergeResult.model_validate(
            {"primary": {"companyId": 1, "company": "Acme"}, "dryRun": True}
        )
        factory = AsyncMock()

        outcome = await merge_duplicates(
            MergeRequest(primary_company=_cs(1), duplicate_companies=[_cs(2), _cs(3)]),
            merger,
            factory,
        )

        assert outcome.merge_type is CompanySource.CSCART
        merger.merge_companies.assert_awaited_once_with(1, [2, 3], dry_run=True)
        factory.assert_not_called()

    async def test_missing_store_primary_is_a_merge_error(self):
        merger = AsyncMock()
        merger.merge_companies.side_effect = LookupError("Primary company 1 not found")

        with pytest.raises(MergeError, match="not found"):
            await merge_duplicates(
                MergeRequest(primary_company=_cs(1), duplicate_companies=[_cs(2)]), merger, AsyncMock()
            )

    async def test_hubspot_merge_archives_duplicates(self, fake_crm: FakeCRM):
        primary = fake_crm.add("companies", {"name": "Acme"})
        duplicate = fake_crm.add("companies", {"name": "ACME"})

        outcome = await merge_duplicates(
            MergeRequest(primary_company=_hs(primary), duplicate_companies=[_hs(duplicate)], dry_run=False),
            AsyncMock(),
            lambda: fake_crm,
        )

        assert outcome.merge_type is CompanySource.HUBSPOT
        assert outcome.result.primary.name == "Acme"
        assert fake_crm.archived == [duplicate]
        assert fake_crm.closed is True
