"""Tests for Prometheus metrics.

Counters in the global registry cannot be reset between tests, so every
assertion reads the value before the action and checks the delta.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import auth, create_test_course


def _get_sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample's current value from the global registry."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before >= 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before >= 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "lecture_completions_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_enrollment_counters(client: TestClient, learner_token: str) -> None:
    course = create_test_course()
    created = _get_sample("enrollments_total", {"result": "created"})
    duplicate = _get_sample("enrollments_total", {"result": "already_enrolled"})

    client.post(f"/v1/courses/{course.id}/enroll", headers=auth(learner_token))
    client.post(f"/v1/courses/{course.id}/enroll", headers=auth(learner_token))

    assert _get_sample("enrollments_total", {"result": "created"}) - created == 1
    assert (
        _get_sample("enrollments_total", {"result": "already_enrolled"}) - duplicate
        == 1
    )


def test_locked_completion_counter(client: TestClient, learner_token: str) -> None:
    course = create_test_course()
    client.post(f"/v1/courses/{course.id}/enroll", headers=auth(learner_token))
    module = course.modules[1]
    before = _get_sample("lecture_completions_total", {"result": "locked"})

    client.post(
        f"/v1/courses/{course.id}/modules/{module.id}"
        f"/lectures/{module.lectures[0].id}/complete",
        headers=auth(learner_token),
    )

    assert _get_sample("lecture_completions_total", {"result": "locked"}) - before == 1
