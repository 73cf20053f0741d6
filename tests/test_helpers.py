"""
Unit tests for the text, slug and category-tree helpers.

Tests:
- Slug generation and uniqueness
- HTML stripping and sanitising
- Search filters and URL checks
- Category tree building, cycles and breadcrumbs
- Validation error labels
"""

from __future__ import annotations

import pytest

from errors import field_label, format_validation_errors, validation_summary
from helpers import (
    client_ip,
    extract_youtube_id,
    generate_slug,
    is_valid_slug,
    is_valid_url_or_path,
    is_valid_youtube_url,
    normalize_slug,
    reading_time,
    sanitize_html,
    search_filter,
    strip_html,
    truncate,
    unique_slug,
)
from trees import ancestor_ids, breadcrumb, build_tree, flatten_tree, would_create_cycle


class TestSlugs:
    """Tests for slug helpers."""

    @pytest.mark.parametrize("text, expected", [
        ("Hårborttagning & Laser", "harborttagning-laser"),
        ("  Köpguide för Kliniker  ", "kopguide-for-kliniker"),
        ("CO₂ Laser™", "co2-laser"),
        ("Q-Terra Q10", "q-terra-q10"),
    ])
    def test_generate_slug(self, text, expected):
        assert generate_slug(text) == expected

    def test_generate_slug_empty(self):
        assert generate_slug("") == ""
        assert generate_slug(None) == ""

    def test_generate_slug_max_length(self):
        slug = generate_slug("ord " * 100)
        assert len(slug) <= 120
        assert not slug.endswith("-")

    def test_normalize_slug(self):
        assert normalize_slug("Min--Slug!!") == "min-slug"

    def test_is_valid_slug(self):
        assert is_valid_slug("motus-ax")
        assert not is_valid_slug("Motus AX")
        assert not is_valid_slug("-motus")
        assert not is_valid_slug("")

    def test_unique_slug_adds_counter(self):
        taken = {"laser", "laser-1"}
        assert unique_slug("laser", taken.__contains__) == "laser-2"

    def test_unique_slug_free_base(self):
        assert unique_slug("laser", lambda s: False) == "laser"

    def test_unique_slug_falls_back_to_timestamp(self):
        slug = unique_slug("laser", lambda s: True, max_attempts=3)
        assert slug.startswith("laser-")
        assert slug[len("laser-"):].isdigit()
        assert len(slug) > len("laser-3")


class TestHtml:
    """Tests for HTML cleaning."""

    def test_strip_html_removes_all_tags(self):
        assert strip_html("<b>Hej</b> <script>x</script>där") == "Hej xdär"

    def test_sanitize_keeps_allowed_markup(self):
        html = sanitize_html('<p>Text <a href="https://synos.se">länk</a></p>')
        assert "<p>" in html
        assert 'href="https://synos.se"' in html

    def test_sanitize_drops_scripts_and_handlers(self):
        html = sanitize_html('<p onclick="evil()">Hej</p><script>alert(1)</script>')
        assert "onclick" not in html
        assert "<script" not in html

    def test_sanitize_drops_javascript_links(self):
        html = sanitize_html('<a href="javascript:alert(1)">x</a>')
        assert "javascript:" not in html

    def test_reading_time(self):
        assert reading_time("") == 1
        assert reading_time("<p>" + "ord " * 450 + "</p>") == 3

    def test_truncate(self):
        assert truncate("kort") == "kort"
        text = truncate("ett två tre fyra fem", length=12)
        assert text.endswith("...")
        assert len(text) <= 12


class TestQueriesAndUrls:
    """Tests for search filters, URL checks and proxy headers."""

    def test_search_filter_escapes_regex(self):
        query = search_filter("a+b", ["title", "slug"])
        assert query == {"$or": [
            {"title": {"$regex": r"a\+b", "$options": "i"}},
            {"slug": {"$regex": r"a\+b", "$options": "i"}},
        ]}

    def test_search_filter_blank(self):
        assert search_filter("   ", ["title"]) is None

    def test_youtube_urls(self):
        assert is_valid_youtube_url("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
        assert is_valid_youtube_url("https://youtu.be/dQw4w9WgXcQ")
        assert not is_valid_youtube_url("https://vimeo.com/123")
        assert extract_youtube_id("https://youtu.be/dQw4w9WgXcQ") == "dQw4w9WgXcQ"

    def test_url_or_path(self):
        assert is_valid_url_or_path("/uploads/a.jpg")
        assert is_valid_url_or_path("https://cdn.synos.se/a.jpg")
        assert not is_valid_url_or_path("ftp://x/a.jpg")

    def test_client_ip(self):
        assert client_ip({"x-forwarded-for": "1.2.3.4, 10.0.0.1"}) == "1.2.3.4"
        assert client_ip({"x-real-ip": "5.6.7.8"}) == "5.6.7.8"
        assert client_ip({}) == "unknown"


@pytest.fixture
def categories() -> list:
    return [
        {"_id": "a", "name": "Laser", "slug": "laser", "parent": None, "order": 1},
        {"_id": "b", "name": "Alexandrit", "slug": "alexandrit", "parent": "a", "order": 0},
        {"_id": "c", "name": "Diod", "slug": "diod", "parent": "a", "order": 0},
        {"_id": "d", "name": "Hud", "slug": "hud", "parent": None, "order": 0},
        {"_id": "e", "name": "Pico", "slug": "pico", "parent": "b", "order": 0},
    ]


class TestTrees:
    """Tests for the category hierarchy helpers."""

    def test_build_tree_orders_roots(self, categories):
        tree = build_tree(categories)
        assert [n["slug"] for n in tree] == ["hud", "laser"]

    def test_build_tree_children_sorted_by_name(self, categories):
        laser = build_tree(categories)[1]
        assert [n["slug"] for n in laser["children"]] == ["alexandrit", "diod"]

    def test_depth_and_path(self, categories):
        nodes = {n["slug"]: n for n in flatten_tree(build_tree(categories))}
        assert nodes["pico"]["depth"] == 2
        assert nodes["pico"]["path"] == "laser/alexandrit/pico"
        assert len(nodes) == 5

    def test_ancestors(self, categories):
        by_id = {c["_id"]: c for c in categories}
        assert ancestor_ids("e", by_id) == ["b", "a"]

    def test_cycle_detection(self, categories):
        by_id = {c["_id"]: c for c in categories}
        assert would_create_cycle("a", "e", by_id)
        assert would_create_cycle("a", "a", by_id)
        assert not would_create_cycle("e", "d", by_id)
        assert not would_create_cycle("a", None, by_id)

    def test_breadcrumb(self, categories):
        by_id = {c["_id"]: c for c in categories}
        assert [c["slug"] for c in breadcrumb("e", by_id)] == ["laser", "alexandrit", "pico"]


class TestValidationLabels:
    """Tests for human readable validation errors."""

    def test_nested_label(self):
        assert field_label(["qa", 1, "question"]) == "Frågor & Svar #2 → Fråga"

    def test_format_strips_prefixes(self):
        errors = format_validation_errors([
            {"loc": ("body", "email"), "msg": "Value error, Ange en giltig e-postadress"},
        ])
        assert errors == [{"field": "E-post", "message": "Ange en giltig e-postadress", "path": ["email"]}]

    def test_summary(self):
        assert validation_summary([]) == "Validation failed"
        assert validation_summary([{"field": "E-post"}]) == "Valideringsfel: E-post"
        assert validation_summary([{"field": "a"}, {"field": "b"}]) == "2 valideringsfel hittades"
