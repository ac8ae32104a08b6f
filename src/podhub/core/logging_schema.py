"""Logging field schema - v1.0

Standard fields (added to all logs):
- schema_version: Log schema version
- service: Service name (podhub)
- component: Derived from the logger name (provider, lifecycle, reaper, api)
- event: Event type (pod_acquired, operation_failed, etc.)
- trace_id: Request trace ID
- duration_ms: Duration in milliseconds

High cardinality fields (OK in logs, NOT in metric labels):
- pod_id: Provider pod ID
- request_id: Request ID
"""

from enum import StrEnum


class LogEvent(StrEnum):
    """Standard log event types.

    Use these event types in the 'event' extra field for consistent
    log filtering and analysis.
    """

    # Provider events
    PROVIDER_CALL_FAILED = "provider_call_failed"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    CONFIGURATION_MISSING = "configuration_missing"
    POD_NOT_FOUND = "pod_not_found"

    # Lifecycle events
    STATE_CHANGED = "state_changed"
    STATE_DRIFT = "state_drift"
    POD_ACQUIRED = "pod_acquired"
    POD_CREATED = "pod_created"
    POD_STOPPED = "pod_stopped"
    POD_TERMINATED = "pod_terminated"
    ACQUIRE_FAILED = "acquire_failed"
    TIMER_ARMED = "timer_armed"
    TIMER_CANCELLED = "timer_cancelled"
    TIMER_FIRED = "timer_fired"

    # Reaper events
    SWEEP_COMPLETE = "sweep_complete"
    CLEANUP_SCHEDULED = "cleanup_scheduled"

    # Operation events
    OPERATION_FAILED = "operation_failed"
    OPERATION_SUCCESS = "operation_success"

    # App lifecycle events
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"

    # API events
    REQUEST_COMPLETE = "request_complete"
    REQUEST_FAILED = "request_failed"
    REQUEST_SLOW = "request_slow"


class ErrorClass(StrEnum):
    """Error classification for structured error logging."""

    TRANSIENT = "transient"  # Retryable (network timeout, 5xx, 429)
    PERMANENT = "permanent"  # Not retryable (4xx, invalid URL)
    UNKNOWN = "unknown"


class Component(StrEnum):
    """Component identifiers, derived from logger names by the formatter."""

    PROVIDER = "provider"  # RunPod client
    LIFECYCLE = "lifecycle"  # LifecycleController
    REAPER = "reaper"  # IdleReaper
    API = "api"  # REST API
