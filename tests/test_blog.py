"""
Tests for blog posts: drafts, publishing rules and the public listing.
"""

from __future__ import annotations

import pytest

from blog import publish_checks

READY = {
    "excerpt": "Kort sammanfattning",
    "featured_image": {"url": "/storage/laser.jpg", "alt": "Laser"},
    "seo": {"title": "Laser i kliniken", "description": "Allt om laser"},
}


@pytest.fixture
def blog_category(client, auth_headers):
    response = client.post("/api/blog-categories", json={"name": "Nyheter"}, headers=auth_headers)
    assert response.status_code == 201
    return response.json()["data"]


def publish(client, headers, post_id):
    return client.post(f"/api/blog-posts/{post_id}/publish", headers=headers)


class TestPublishChecks:
    def test_complete_post(self):
        post = {"title": "T", "slug": "t", "content": "<p>x</p>", **READY}
        assert publish_checks(post) == []

    def test_missing_required(self):
        fields = {c["field"] for c in publish_checks({}) if c["type"] == "error"}
        assert fields == {"title", "slug", "content"}

    def test_bad_slug(self):
        checks = publish_checks({"title": "T", "slug": "Inte OK", "content": "x", **READY})
        assert checks == [{
            "field": "slug",
            "message": "Slug must be lowercase, alphanumeric with hyphens only",
            "type": "error",
        }]

    def test_warnings_only(self):
        checks = publish_checks({"title": "T", "slug": "t", "content": "x"})
        assert {c["type"] for c in checks} == {"warning"}
        assert {c["field"] for c in checks} == {"excerpt", "featured_image", "seo.title", "seo.description"}


class TestCreatePost:
    def test_created_as_draft(self, make_post):
        post = make_post(publish_type="publish")
        assert post["publish_type"] == "draft"
        assert post["published_at"] is None
        assert post["slug"] == "laser-i-kliniken"
        assert post["author"] == "Anna Admin"

    def test_slug_made_unique(self, make_post):
        make_post()
        assert make_post()["slug"] == "laser-i-kliniken-1"

    def test_explicit_duplicate_slug(self, client, auth_headers, make_post):
        make_post(slug="laser")
        response = client.post(
            "/api/blog-posts", json={"title": "Annan", "slug": "laser"}, headers=auth_headers
        )
        assert response.status_code == 409

    def test_content_sanitized(self, make_post):
        post = make_post(content='<p onclick="x()">Hej</p><script>alert(1)</script>')
        assert post["content"] == "<p>Hej</p>alert(1)"

    def test_tags_cleaned(self, make_post):
        assert make_post(tags=[" Laser ", "Laser", "", "Hudvård"])["tags"] == ["Laser", "Hudvård"]

    def test_unknown_category(self, client, auth_headers):
        response = client.post(
            "/api/blog-posts",
            json={"title": "X", "categories": ["65f000000000000000000001"]},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_requires_login(self, client, db):
        assert client.post("/api/blog-posts", json={"title": "X"}).status_code == 401


class TestPublish:
    def test_missing_content(self, client, auth_headers, make_post):
        post = make_post(content="")
        response = publish(client, auth_headers, post["id"])
        assert response.status_code == 422
        body = response.json()
        assert body["message"] == "Please fill in the following required fields: content"
        assert body["errors"][0]["field"] == "content"

    def test_publish_with_warnings(self, client, auth_headers, make_post):
        post = make_post()
        response = publish(client, auth_headers, post["id"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["post"]["publish_type"] == "publish"
        assert data["post"]["published_at"] is not None
        assert {w["field"] for w in data["warnings"]} == {
            "excerpt", "featured_image", "seo.title", "seo.description",
        }

    def test_publish_through_update(self, client, auth_headers, make_post):
        post = make_post(**READY)
        response = client.put(
            f"/api/blog-posts/{post['id']}", json={"publish_type": "publish"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["publish_type"] == "publish"

    def test_unpublish(self, client, auth_headers, make_post):
        post = make_post()
        publish(client, auth_headers, post["id"])
        response = client.delete(f"/api/blog-posts/{post['id']}/publish", headers=auth_headers)
        assert response.json()["data"]["publish_type"] == "draft"

    def test_invalid_id(self, client, auth_headers):
        response = publish(client, auth_headers, "abc")
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid post ID format"

    def test_unknown_post(self, client, auth_headers):
        assert publish(client, auth_headers, "65f000000000000000000001").status_code == 404


class TestUpdate:
    def test_slug_conflict(self, client, auth_headers, make_post):
        make_post(slug="forsta")
        second = make_post(slug="andra")
        response = client.put(f"/api/blog-posts/{second['id']}", json={"slug": "forsta"}, headers=auth_headers)
        assert response.status_code == 409

    def test_partial_update_keeps_other_fields(self, client, auth_headers, make_post):
        post = make_post(excerpt="Behåll mig")
        response = client.put(f"/api/blog-posts/{post['id']}", json={"title": "Ny titel"}, headers=auth_headers)
        data = response.json()["data"]
        assert data["title"] == "Ny titel"
        assert data["excerpt"] == "Behåll mig"
        assert data["slug"] == post["slug"]


class TestPublicPosts:
    @pytest.fixture
    def published(self, client, auth_headers, make_post, blog_category):
        posts = []
        for title, tags in (("Laser och hud", ["Laser"]), ("Eftervård", ["Hudvård"]), ("Ny maskin", ["Laser"])):
            post = make_post(title=title, tags=tags, author="Sara Ek", categories=[blog_category["id"]], **READY)
            publish(client, auth_headers, post["id"])
            posts.append(post)
        make_post(title="Utkast", tags=["Hemligt"])
        return posts

    def test_only_published_listed(self, client, published):
        body = client.get("/api/blog-posts/public").json()
        assert body["meta"]["total"] == 3
        assert "Utkast" not in [p["title"] for p in body["data"]]

    def test_categories_resolved(self, client, published, blog_category):
        post = client.get("/api/blog-posts/public").json()["data"][0]
        assert post["categories"] == [{"id": blog_category["id"], "name": "Nyheter", "slug": "nyheter"}]

    def test_pagination_meta(self, client, published):
        meta = client.get("/api/blog-posts/public", params={"limit": 2, "page": 2}).json()["meta"]
        assert meta == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}

    def test_filter_by_tag(self, client, published):
        body = client.get("/api/blog-posts/public/tag/Laser").json()
        assert body["meta"]["total"] == 2

    def test_search(self, client, published):
        body = client.get("/api/blog-posts/public", params={"search": "eftervård"}).json()
        assert [p["title"] for p in body["data"]] == ["Eftervård"]

    def test_unknown_category_slug_gives_empty_page(self, client, published):
        body = client.get("/api/blog-posts/public", params={"category": "finns-inte"}).json()
        assert body["data"] == []
        assert body["meta"]["total"] == 0

    def test_by_category(self, client, published):
        assert client.get("/api/blog-posts/public/category/nyheter").json()["meta"]["total"] == 3
        assert client.get("/api/blog-posts/public/category/okand").status_code == 404

    def test_tags(self, client, published):
        assert client.get("/api/blog-posts/public/tags").json()["data"] == ["Hudvård", "Laser"]

    def test_by_author_slug(self, client, published):
        assert client.get("/api/blog-posts/public/author/sara-ek").json()["meta"]["total"] == 3

    def test_by_slug_with_related(self, client, published):
        response = client.get("/api/blog-posts/public/slug/eftervard")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["post"]["reading_time"] == 1
        assert len(data["related"]) == 2
        assert all(p["slug"] != "eftervard" for p in data["related"])

    def test_draft_not_found_by_slug(self, client, published):
        assert client.get("/api/blog-posts/public/slug/utkast").status_code == 404


class TestAdminPosts:
    def test_stats(self, client, auth_headers, make_post):
        publish(client, auth_headers, make_post()["id"])
        make_post()
        data = client.get("/api/blog-posts/stats", headers=auth_headers).json()["data"]
        assert data == {"total": 2, "published": 1, "draft": 1, "private": 0}

    def test_list_filtered_by_state(self, client, auth_headers, make_post):
        publish(client, auth_headers, make_post()["id"])
        make_post()
        body = client.get("/api/blog-posts", params={"publish_type": "draft"}, headers=auth_headers).json()
        assert body["meta"]["total"] == 1
        assert body["data"][0]["publish_type"] == "draft"

    def test_delete_removes_comments(self, client, db, auth_headers, make_post):
        post = make_post()
        db["blogcomment"].insert_one({"post_id": post["id"], "status": "approved", "comment": "Bra text!"})
        response = client.delete(f"/api/blog-posts/{post['id']}", headers=auth_headers)
        assert response.status_code == 204
        assert db["blogcomment"].count_documents({}) == 0
        assert client.get(f"/api/blog-posts/{post['id']}", headers=auth_headers).status_code == 404
