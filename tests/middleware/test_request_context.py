"""Tests for the request context middleware.

Every response gets an X-Request-ID header, generated or echoed from the
request, and error bodies carry the same ID.
"""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/v1/users/profile", headers={"X-Request-ID": "req-401"})
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") == "req-401"
    assert resp.json()["request_id"] == "req-401"
