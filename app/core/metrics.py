"""Application metrics (Prometheus client library).

All metrics are defined here so there is one inventory of what the service
measures.  Owning modules import a metric and increment/observe it at the
point of action; /metrics exposes the registry for scraping.

Label values are kept to small fixed sets (outcomes, operations).  Never
put a user id, session id or URL with a query string into a label: every
distinct label value is a new time series.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Sign-in flow
# ---------------------------------------------------------------------------

LOGIN_ATTEMPTS = Counter(
    "login_attempts_total",
    "Completed callbacks by outcome",
    # started | success | invalid_state | provider_rejected | network_error
    ["outcome"],
)

STATE_TOKENS = Counter(
    "state_tokens_total",
    "Anti-forgery state tokens by result",
    ["result"],  # issued | consumed | rejected
)

TOKEN_REFRESHES = Counter(
    "token_refreshes_total",
    "Provider refresh-grant calls by result",
    # success | reauth_required | network_error | provider_rejected | coalesced
    ["result"],
)

PROVIDER_REQUEST_DURATION = Histogram(
    "provider_request_duration_seconds",
    "Outbound identity-provider call duration in seconds",
    ["operation"],  # exchange_code | refresh | userinfo | revoke
    # Provider round-trips cross the internet: widen the upper buckets.
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

SESSION_EVENTS = Counter(
    "sessions_total",
    "Session lifecycle events",
    ["event"],  # created | revoked | expired | not_found
)
