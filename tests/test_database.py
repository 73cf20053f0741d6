"""
Tests for the shared pagination helpers.
"""

from __future__ import annotations

import pytest

from database import clamp_pagination, find_paginated, parse_sort


class TestClampPagination:
    @pytest.mark.parametrize("page, limit, expected", [
        (1, 20, (1, 20)),
        (3, 100, (3, 100)),
        (1, 101, (1, 100)),
        (1, 5000, (1, 100)),
        (0, 20, (1, 20)),
        (-2, 20, (1, 20)),
        (None, None, (1, 10)),
        (1, 0, (1, 10)),
        (1, -5, (1, 1)),
    ])
    def test_bounds(self, page, limit, expected):
        assert clamp_pagination(page, limit) == expected

    def test_default_limit_argument(self):
        assert clamp_pagination(1, None, default_limit=50) == (1, 50)


class TestParseSort:
    def test_mixed_keys(self):
        assert parse_sort("order,-name") == [("order", 1), ("name", -1)]

    def test_default(self):
        assert parse_sort(None) == [("created_at", -1)]


class TestFindPaginated:
    @pytest.fixture
    def items(self, db):
        db["item"].insert_many([{"n": i} for i in range(150)])

    def test_limit_capped_at_100(self, items):
        result = find_paginated("item", page=1, limit=500, sort="n")
        assert result["limit"] == 100
        assert len(result["data"]) == 100
        assert result["total"] == 150
        assert result["total_pages"] == 2

    def test_page_zero_is_first_page(self, items):
        result = find_paginated("item", page=0, limit=10, sort="n")
        assert result["page"] == 1
        assert [d["n"] for d in result["data"]] == list(range(10))

    def test_last_page(self, items):
        result = find_paginated("item", {"n": {"$gte": 100}}, page=2, limit=30, sort="n")
        assert result["total"] == 50
        assert [d["n"] for d in result["data"]] == list(range(130, 150))

    def test_empty_collection(self, db):
        result = find_paginated("item", page=1, limit=0)
        assert result == {"data": [], "total": 0, "page": 1, "limit": 10, "total_pages": 0}
