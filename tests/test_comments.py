"""
Tests for reader comments and their moderation.
"""

from __future__ import annotations

import pytest

COMMENT = {
    "name": "Lisa Lund",
    "email": "Lisa@Example.se",
    "country_code": "+46",
    "phone": "701234567",
    "comment": "Mycket intressant artikel, tack!",
}


@pytest.fixture
def post(make_post):
    return make_post()


def comment_on(client, post_id, **fields):
    return client.post(
        f"/api/blog-posts/{post_id}/comments",
        json={**COMMENT, **fields},
        headers={"X-Forwarded-For": "192.168.1.20", "User-Agent": "pytest"},
    )


class TestSubmitComment:
    def test_created_pending(self, client, db, post):
        response = comment_on(client, post["id"])
        assert response.status_code == 201
        assert response.json()["message"].startswith("Tack för din kommentar")
        stored = db["blogcomment"].find_one()
        assert stored["status"] == "pending"
        assert stored["email"] == "lisa@example.se"
        assert stored["phone"] == "+46701234567"
        assert stored["ip_address"] == "192.168.1.20"

    def test_html_stripped(self, client, db, post):
        comment_on(client, post["id"], comment="<b>Bra</b> skrivet om laser!")
        assert db["blogcomment"].find_one()["comment"] == "Bra skrivet om laser!"

    @pytest.mark.parametrize("field,value,message", [
        ("name", "L", "Namn måste vara minst 2 tecken"),
        ("email", "inte-en-adress", "Ogiltig e-postadress"),
        ("comment", "Kort", "Kommentar måste vara minst 10 tecken"),
        ("phone", "12345678901234", "Ogiltigt telefonnummer för valt land"),
        ("phone", "000 0000", "Ogiltigt telefonnummer för valt land"),
        ("country_code", "46", "Ogiltig landskod"),
        ("country_code", "+46a", "Ogiltig landskod"),
    ])
    def test_invalid(self, client, post, field, value, message):
        response = comment_on(client, post["id"], **{field: value})
        assert response.status_code == 400
        assert response.json()["errors"][0]["message"] == message

    def test_unknown_post(self, client, db):
        assert comment_on(client, "65f000000000000000000001").status_code == 404

    def test_invalid_post_id(self, client, db):
        response = comment_on(client, "xyz")
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid blog post ID format"


class TestPublicComments:
    def test_only_approved_without_contact_details(self, client, db, auth_headers, post):
        comment_on(client, post["id"])
        comment_on(client, post["id"], name="Olle")
        first = db["blogcomment"].find_one({"name": "Lisa Lund"})
        client.patch(f"/api/comments/{first['_id']}", json={"status": "approved"}, headers=auth_headers)

        comments = client.get(f"/api/blog-posts/{post['id']}/comments").json()["data"]
        assert len(comments) == 1
        assert set(comments[0]) == {"id", "name", "comment", "created_at"}


class TestModeration:
    @pytest.fixture
    def comment_id(self, client, db, post):
        comment_on(client, post["id"])
        return str(db["blogcomment"].find_one()["_id"])

    def test_list_with_post_title(self, client, auth_headers, post, comment_id):
        body = client.get("/api/comments", params={"status": "pending"}, headers=auth_headers).json()
        assert body["meta"]["total"] == 1
        assert body["data"][0]["post_title"] == post["title"]
        assert body["data"][0]["post_slug"] == post["slug"]

    def test_requires_login(self, client, comment_id):
        assert client.get("/api/comments").status_code == 401

    def test_reject(self, client, auth_headers, comment_id):
        response = client.patch(f"/api/comments/{comment_id}", json={"status": "rejected"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "rejected"

    def test_unknown_status(self, client, auth_headers, comment_id):
        response = client.patch(f"/api/comments/{comment_id}", json={"status": "spam"}, headers=auth_headers)
        assert response.status_code == 400

    def test_stats(self, client, auth_headers, comment_id):
        data = client.get("/api/comments/stats", headers=auth_headers).json()["data"]
        assert data == {"total": 1, "pending": 1, "approved": 0, "rejected": 0}

    def test_delete(self, client, db, auth_headers, comment_id):
        assert client.delete(f"/api/comments/{comment_id}", headers=auth_headers).status_code == 204
        assert db["blogcomment"].count_documents({}) == 0

    def test_invalid_id(self, client, auth_headers, comment_id):
        response = client.get("/api/comments/nope", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid comment ID format"
