"""
Tests for public form submissions and the inquiry dashboard.

Tests:
- Per-type validation and Swedish error messages
- Rate limiting per IP
- Callback requests with slot validation
- Listing, filtering, status changes, export and stats
"""

from __future__ import annotations

import pytest

from callback import bookable_days
from inquiries import full_phone_number, is_valid_phone

PRODUCT_INQUIRY = {
    "type": "product_inquiry",
    "full_name": "Maria Andersson",
    "email": "Maria@Klinik.se",
    "country_code": "+46",
    "country_name": "Sverige",
    "phone": "70-123 45 67",
    "gdpr_consent": True,
    "help_type": "clinic_buy",
    "product_id": "65f000000000000000000001",
    "product_name": "Motus AX",
    "product_slug": "motus-ax",
}

CONTACT = {
    "type": "contact",
    "full_name": "Erik Berg",
    "email": "erik@salong.se",
    "country_code": "+46",
    "country_name": "Sverige",
    "phone": "701234567",
    "gdpr_consent": True,
    "subject": "Service av maskin",
    "message": "Vår laser behöver service, när kan ni komma?",
}


def submit(client, body, headers):
    return client.post("/api/form-submissions", json=body, headers=headers)


class TestPhone:
    """Tests for phone number helpers."""

    def test_full_phone_number(self):
        assert full_phone_number("+46", "70-123 45 67") == "+46701234567"

    @pytest.mark.parametrize("country_code, phone", [
        ("+46", "70 123 45 67"),
        ("+47", "412 34 567"),
        ("+1", "650-253-0000"),
        ("+44", "7911 123456"),
    ])
    def test_valid_numbers(self, country_code, phone):
        assert is_valid_phone(country_code, phone)

    @pytest.mark.parametrize("country_code, phone", [
        ("+46", "70 123"),
        ("+46", "70 123 45 67 89 01"),
        ("+1", "555 5555"),
        ("+1", "650 253 0000 99"),
        ("+47", "4123"),
        ("+47", "41 23 45 67 89"),
    ])
    def test_wrong_length_for_country(self, country_code, phone):
        assert not is_valid_phone(country_code, phone)

    def test_unknown_country_code(self):
        assert not is_valid_phone("+999", "701234567")


class TestCreateSubmission:
    """Tests for POST /api/form-submissions."""

    def test_product_inquiry_created(self, client, db, unique_ip):
        response = submit(client, PRODUCT_INQUIRY, unique_ip)
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["message"].startswith("Tack")

        doc = db["formsubmission"].find_one()
        assert doc["status"] == "new"
        assert doc["email"] == "maria@klinik.se"
        assert doc["gdpr_consent_version"] == "1.0"
        assert doc["metadata"]["ip_address"] == unique_ip["X-Forwarded-For"]

    def test_type_defaults_to_product_inquiry(self, client, db, unique_ip):
        body = {k: v for k, v in PRODUCT_INQUIRY.items() if k != "type"}
        assert submit(client, body, unique_ip).status_code == 201
        assert db["formsubmission"].find_one()["type"] == "product_inquiry"

    def test_unknown_type(self, client, unique_ip):
        response = submit(client, {**CONTACT, "type": "newsletter"}, unique_ip)
        assert response.status_code == 400
        assert response.json()["message"] == "Unsupported form type"

    def test_demo_request_not_accepted(self, client, db, unique_ip):
        response = submit(client, {**PRODUCT_INQUIRY, "type": "demo_request"}, unique_ip)
        assert response.status_code == 400
        assert response.json()["message"] == "Unsupported form type"
        assert db["formsubmission"].count_documents({}) == 0

    def test_html_is_stripped(self, client, db, unique_ip):
        body = {**CONTACT, "message": "<b>Hej</b> vi vill boka <script>x</script>service"}
        assert submit(client, body, unique_ip).status_code == 201
        assert "<" not in db["formsubmission"].find_one()["message"]

    def test_missing_consent(self, client, unique_ip):
        response = submit(client, {**CONTACT, "gdpr_consent": False}, unique_ip)
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Valideringsfel: GDPR-samtycke"
        assert body["errors"][0]["message"] == "Du måste godkänna integritetspolicyn"

    def test_several_errors(self, client, unique_ip):
        response = submit(client, {**CONTACT, "email": "inte-en-adress", "subject": "x"}, unique_ip)
        assert response.status_code == 422
        assert response.json()["message"] == "2 valideringsfel hittades"

    @pytest.mark.parametrize("field, value", [
        ("country_code", "46"),
        ("phone", "12ab5678"),
        ("phone", "123"),
        ("full_name", "A"),
    ])
    def test_field_rules(self, client, unique_ip, field, value):
        assert submit(client, {**CONTACT, field: value}, unique_ip).status_code == 422

    def test_reseller_application(self, client, db, unique_ip):
        body = {
            "type": "reseller_application",
            "full_name": "Lena Ek",
            "email": "lena@hudvard.se",
            "country_code": "+47",
            "phone": "41234567",
            "gdpr_consent": True,
            "company_name": "Hudvård AS",
            "business_description": "Vi driver tre kliniker i Oslo.",
        }
        assert submit(client, body, unique_ip).status_code == 201
        assert db["formsubmission"].find_one()["company_name"] == "Hudvård AS"

    def test_rate_limit(self, client, unique_ip):
        for _ in range(5):
            assert submit(client, CONTACT, unique_ip).status_code == 201
        response = submit(client, CONTACT, unique_ip)
        assert response.status_code == 429
        assert "För många" in response.json()["message"]

    def test_rate_limit_is_per_ip(self, client):
        for _ in range(5):
            submit(client, CONTACT, {"X-Forwarded-For": "192.168.1.1"})
        response = submit(client, CONTACT, {"X-Forwarded-For": "192.168.1.2"})
        assert response.status_code == 201


class TestCallbackRequest:
    """Tests for callback requests."""

    def test_valid_slot(self, client, db, unique_ip):
        day = bookable_days(1)[0].isoformat()
        body = {
            "type": "callback_request",
            "country_code": "+46",
            "phone": "701234567",
            "preferred_date": day,
            "preferred_time": "10:30",
            "gdpr_consent": True,
        }
        assert submit(client, body, unique_ip).status_code == 201
        doc = db["formsubmission"].find_one()
        assert doc["full_name"] == "Callback Request"
        assert doc["preferred_time"] == "10:30"
        assert day in doc["message"]

    def test_invalid_slot(self, client, unique_ip):
        day = bookable_days(1)[0].isoformat()
        body = {
            "type": "callback_request",
            "country_code": "+46",
            "phone": "701234567",
            "preferred_date": day,
            "preferred_time": "19:00",
            "gdpr_consent": True,
        }
        response = submit(client, body, unique_ip)
        assert response.status_code == 422
        assert response.json()["errors"][0]["message"] == "Välj en tid mellan 09:00 och 17:45"

    def test_recording_consent(self, client, unique_ip):
        day = bookable_days(1)[0].isoformat()
        body = {
            "type": "callback_request",
            "country_code": "+46",
            "phone": "701234567",
            "preferred_date": day,
            "preferred_time": "10:30",
            "gdpr_consent": False,
        }
        response = submit(client, body, unique_ip)
        assert response.status_code == 422
        assert "spelas in" in response.json()["errors"][0]["message"]


@pytest.fixture
def submissions(client, db):
    ids = []
    for i, body in enumerate([PRODUCT_INQUIRY, CONTACT, {**CONTACT, "full_name": "Sara Lind"}]):
        response = submit(client, body, {"X-Forwarded-For": f"172.16.0.{i}"})
        ids.append(response.json()["data"]["id"])
    return ids


class TestDashboard:
    """Tests for the authenticated inquiry routes."""

    def test_requires_auth(self, client):
        response = client.get("/api/form-submissions")
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_list_and_filter(self, client, auth_headers, submissions):
        response = client.get("/api/form-submissions", headers=auth_headers)
        body = response.json()
        assert body["meta"]["total"] == 3
        assert body["meta"]["limit"] == 20

        response = client.get("/api/form-submissions", params={"type": "contact"}, headers=auth_headers)
        assert response.json()["meta"]["total"] == 2

        response = client.get("/api/form-submissions", params={"search": "sara"}, headers=auth_headers)
        assert [s["full_name"] for s in response.json()["data"]] == ["Sara Lind"]

    def test_pagination(self, client, auth_headers, submissions):
        response = client.get("/api/form-submissions", params={"limit": 2, "page": 2}, headers=auth_headers)
        body = response.json()
        assert len(body["data"]) == 1
        assert body["meta"]["total_pages"] == 2

    def test_limit_too_large(self, client, auth_headers):
        response = client.get("/api/form-submissions", params={"limit": 500}, headers=auth_headers)
        assert response.status_code == 400

    def test_mark_read(self, client, auth_headers, submissions):
        response = client.patch(
            f"/api/form-submissions/{submissions[0]}/status", json={"status": "read"}, headers=auth_headers,
        )
        data = response.json()["data"]
        assert data["status"] == "read"
        assert data["read_at"] is not None
        assert data["read_by"]

    def test_invalid_status(self, client, auth_headers, submissions):
        response = client.patch(
            f"/api/form-submissions/{submissions[0]}/status", json={"status": "new"}, headers=auth_headers,
        )
        assert response.status_code == 400

    def test_bulk_status(self, client, auth_headers, submissions):
        response = client.patch(
            "/api/form-submissions/bulk-status",
            json={"ids": submissions[:2], "status": "archived"},
            headers=auth_headers,
        )
        assert response.json()["data"]["modified"] == 2
        stats = client.get("/api/form-submissions/stats", headers=auth_headers).json()["data"]
        assert stats == {"total": 3, "new": 1, "read": 0, "archived": 2,
                         "by_type": {"product_inquiry": 1, "contact": 2}}

    def test_get_and_delete(self, client, auth_headers, submissions):
        url = f"/api/form-submissions/{submissions[1]}"
        assert client.get(url, headers=auth_headers).json()["data"]["full_name"] == "Erik Berg"
        assert client.delete(url, headers=auth_headers).status_code == 204
        assert client.get(url, headers=auth_headers).status_code == 404

    def test_invalid_id(self, client, auth_headers):
        response = client.get("/api/form-submissions/not-an-id", headers=auth_headers)
        assert response.status_code == 400

    def test_export_csv(self, client, auth_headers, submissions):
        response = client.post("/api/form-submissions/export", json={"type": "contact"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "form-submissions-" in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert lines[0].startswith("ID,Type,Status")
        assert len(lines) == 3

    def test_export_nothing_found(self, client, auth_headers, submissions):
        response = client.post("/api/form-submissions/export", json={"type": "tour_request"}, headers=auth_headers)
        assert response.status_code == 400

    def test_export_xlsx_not_supported(self, client, auth_headers, submissions):
        response = client.post("/api/form-submissions/export", json={"format": "xlsx"}, headers=auth_headers)
        assert response.status_code == 400
        assert "XLSX" in response.json()["message"]
