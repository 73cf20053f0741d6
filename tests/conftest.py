"""Shared pytest fixtures for the API tests.

Fixture overview
----------------
db           : in-memory MongoDB (mongomock) swapped in for ``database.db``
client       : FastAPI ``TestClient`` bound to that database
admin_token  : bearer token of the bootstrap admin (first signup)
auth_headers : ``Authorization`` header for ``admin_token``
make_post    : create a blog post through the API
make_product : create a product through the API
"""

from __future__ import annotations

import itertools

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from main import app

_ip_counter = itertools.count(1)


@pytest.fixture
def db(monkeypatch):
    """Fresh in-memory database per test."""
    test_db = mongomock.MongoClient(tz_aware=True)["synos_test"]
    monkeypatch.setattr(database, "db", test_db)
    database.ensure_indexes()
    return test_db


@pytest.fixture
def client(db) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_token(client) -> str:
    response = client.post(
        "/api/auth/signup",
        json={"name": "Anna Admin", "email": "admin@synos.se", "password": "hemligt123"},
    )
    assert response.status_code == 201
    return response.json()["data"]["token"]


@pytest.fixture
def auth_headers(admin_token) -> dict:
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def unique_ip() -> dict:
    """A fresh X-Forwarded-For so each test starts with an empty rate-limit window."""
    return {"X-Forwarded-For": f"10.0.0.{next(_ip_counter)}"}


@pytest.fixture
def make_post(client, auth_headers):
    def _make(**fields):
        body = {"title": "Laser i kliniken", "content": "<p>Innehåll om laser</p>", **fields}
        response = client.post("/api/blog-posts", json=body, headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _make


@pytest.fixture
def make_product(client, auth_headers):
    def _make(**fields):
        body = {
            "title": "Motus AX",
            "short_description": "Alexandritlaser",
            "product_description": "<p>Beskrivning</p>",
            "product_images": ["/storage/motus.png"],
            **fields,
        }
        response = client.post("/api/products", json=body, headers=auth_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]
    return _make
