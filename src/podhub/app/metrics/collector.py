"""Prometheus metrics definitions.

Single process, default registry. Label values stay low cardinality:
pod IDs go to logs, never to labels.
"""

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Histogram Buckets
# =============================================================================

# FAST: request handling, lock waits (1ms ~ 5s)
_BUCKETS_FAST = (
    0.001, 0.002, 0.005, 0.01, 0.02,
    0.05, 0.1, 0.2, 0.5, 1, 2, 5,
)

# MEDIUM: provider API calls (5ms ~ 60s)
_BUCKETS_MEDIUM = (
    0.005, 0.01, 0.02, 0.04, 0.09,
    0.18, 0.36, 0.73, 1.5, 3,
    6.2, 12.7, 26, 53,
)

# =============================================================================
# HTTP Metrics
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "podhub_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "podhub_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "endpoint"],
    buckets=_BUCKETS_FAST,
)

# =============================================================================
# Provider Metrics
# =============================================================================

PROVIDER_CALLS_TOTAL = Counter(
    "podhub_provider_calls_total",
    "Provider API calls",
    ["operation", "result"],  # result: success, failure, not_found
)

PROVIDER_CALL_DURATION = Histogram(
    "podhub_provider_call_duration_seconds",
    "Provider API call duration",
    ["operation"],
    buckets=_BUCKETS_MEDIUM,
)

# =============================================================================
# Lifecycle Metrics
# =============================================================================

ACTIVE_CONNECTIONS = Gauge(
    "podhub_active_connections",
    "Client connections registered against the active pod",
)

ACTIVE_POD = Gauge(
    "podhub_active_pod",
    "1 if a pod is in the active slot, 0 otherwise",
)

POD_TRANSITIONS_TOTAL = Counter(
    "podhub_pod_transitions_total",
    "Active slot transitions",
    ["transition"],  # acquired, created, resumed, demoted, terminated, drift
)

REAPER_PENDING_TIMERS = Gauge(
    "podhub_reaper_pending_timers",
    "Idle pods with a pending cleanup timer",
)

REAPER_TERMINATIONS_TOTAL = Counter(
    "podhub_reaper_terminations_total",
    "Idle pods terminated by the reaper",
)
