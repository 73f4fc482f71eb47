"""
Tests for query normalization and catalog search.
"""

import pytest

from src.agents.entity_catalog import EntityCatalog, NumericRange, normalize_title
from src.agents.query_normalizer import normalize_query, singularize
from src.data.models import Campaign
from src.data.store import JsonFileStore


class TestQueryNormalizer:
    """Tests for normalize_query."""

    def test_filler_and_synonym(self):
        assert normalize_query("uhmm search for tech") == ["technology"]

    def test_empty_input(self):
        assert normalize_query("") == []
        assert normalize_query("   ") == []
        assert normalize_query(None) == []

    def test_deduplicates_in_order(self):
        assert normalize_query("water Water WATER wells") == ["water", "well"]

    def test_strips_disallowed_characters(self):
        assert normalize_query("hello!!! edu <stuff>") == ["education", "stuff"]

    @pytest.mark.parametrize(
        "token,expected",
        [
            ("puppies", "puppy"),
            ("boxes", "box"),
            ("classes", "class"),
            ("grass", "grass"),
            ("dogs", "dog"),
            ("cats", "cat"),
            ("bus", "bus"),
        ],
    )
    def test_singularize(self, token, expected):
        assert singularize(token) == expected

    @pytest.mark.parametrize(
        "text",
        [
            "uhmm search for tech",
            "Finds the boxes of puppies",
            "please show me edu campaigns",
            "looking for $50 wells in kenya",
            "classes glasses",
            "",
        ],
    )
    def test_idempotent(self, text):
        once = normalize_query(text)
        assert normalize_query(" ".join(once)) == once

    def test_filler_exposed_by_singularization(self):
        # "finds" -> "find", which is itself a filler word
        assert normalize_query("finds water") == ["water"]


class TestNormalizeTitle:
    """Tests for title normalization used by exact matching."""

    def test_strips_category_suffix_and_whitespace(self):
        assert normalize_title("  Clean   Water [environment] ") == "clean water"

    def test_plain_title(self):
        assert normalize_title("EdTech for All") == "edtech for all"


class TestEntityCatalog:
    """Tests for keyword search, filters, sorting and paging."""

    @pytest.fixture
    def catalog(self, store):
        return EntityCatalog(store)

    @pytest.mark.asyncio
    async def test_technology_matches_description(self, catalog):
        page = await catalog.search(normalize_query("uhmm search for tech"))
        assert [c.id for c in page] == ["c2"]
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_word_boundary(self, catalog):
        page = await catalog.search(["cat"])
        # "education" contains "cat" but is not a whole-word match
        assert [c.id for c in page] == ["c3"]

    @pytest.mark.asyncio
    async def test_tokens_are_or_matched(self, catalog):
        page = await catalog.search(["cat", "books"])
        assert {c.id for c in page} == {"c3", "c4"}

    @pytest.mark.asyncio
    async def test_category_filter_is_exact(self, catalog):
        page = await catalog.search([], category="Education")
        assert {c.id for c in page} == {"c2", "c4"}

        page = await catalog.search([], category="educ")
        assert len(page) == 0

    @pytest.mark.asyncio
    async def test_goal_range_inclusive(self, catalog):
        page = await catalog.search([], goal=NumericRange(min=2000, max=3000))
        assert {c.id for c in page} == {"c3", "c4"}

    @pytest.mark.asyncio
    async def test_sort_by_raised_descending(self, catalog):
        page = await catalog.search([], sort_by="raised")
        raised = [c.raised for c in page]
        assert raised == sorted(raised, reverse=True)

    @pytest.mark.asyncio
    async def test_sort_newest(self, catalog):
        page = await catalog.search([], sort_by="newest")
        ids = [c.id for c in page]
        # dated newest first, then undated by title
        assert ids[:3] == ["c2", "c3", "c1"]
        assert ids[3:] == ["c5", "c4", "c6"]

    @pytest.mark.asyncio
    async def test_page_capped_at_ten(self):
        campaigns = [
            Campaign(id=f"w{i}", title=f"Water Project {i}", goal=100, chains=["Ethereum"])
            for i in range(15)
        ]
        catalog = EntityCatalog(JsonFileStore(campaigns=campaigns))
        page = await catalog.search(["water"])
        assert len(page) == 10
        assert page.total == 15

    @pytest.mark.asyncio
    async def test_by_exact_title(self, catalog):
        campaign = await catalog.by_exact_title("clean water [environment]")
        assert campaign.id == "c1"
        assert await catalog.by_exact_title("clean") is None
