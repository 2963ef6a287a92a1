"""Prometheus middleware and flow metrics.

prometheus-client counters live in a global registry and cannot be reset,
so every assertion is on the delta around an action.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import sign_in


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before == 1


def test_endpoint_label_is_route_template_without_query(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/callback", "status_code": "400"}
    before = _get_sample("http_requests_total", labels)
    client.get("/callback", params={"code": "c", "state": "forged"})
    assert _get_sample("http_requests_total", labels) - before == 1


def test_unknown_paths_share_one_label(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get("/no/such/page-1")
    client.get("/no/such/page-2")
    assert _get_sample("http_requests_total", labels) - before == 2


def test_login_outcomes_are_counted(client: TestClient) -> None:
    success = {"outcome": "success"}
    invalid = {"outcome": "invalid_state"}
    before_success = _get_sample("login_attempts_total", success)
    before_invalid = _get_sample("login_attempts_total", invalid)

    sign_in(client)
    client.get("/callback", params={"code": "c", "state": "forged"})

    assert _get_sample("login_attempts_total", success) - before_success == 1
    assert _get_sample("login_attempts_total", invalid) - before_invalid == 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "login_attempts_total" in resp.text
    assert "token_refreshes_total" in resp.text
