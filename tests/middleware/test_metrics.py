"""Prometheus metrics middleware.

The default registry is global and counters only go up, so every test
asserts on the delta around the request it makes.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import event_json


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_endpoint_label_is_the_route_template(client: TestClient) -> None:
    labels = {
        "method": "POST",
        "endpoint": "/v1/users/{user_id}/progress/events",
        "status_code": "200",
    }
    before = _get_sample("http_requests_total", labels)
    client.post("/v1/users/alice/progress/events", json=event_json())
    client.post("/v1/users/bob/progress/events", json=event_json())
    assert _get_sample("http_requests_total", labels) - before == 2


def test_unmatched_paths_share_one_label(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get("/no/such/page")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before == 1


def test_metrics_endpoint_exposes_progress_counters(client: TestClient) -> None:
    client.post("/v1/users/u1/progress/events", json=event_json())
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "quiz_events_total" in resp.text
    assert "progress_save_conflicts_total" in resp.text


def test_metrics_scrape_is_not_counted(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) - before == 0
