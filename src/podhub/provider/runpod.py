"""RunPod REST client.

Issues list/create/start/stop/terminate/describe calls against the RunPod
REST API with bearer authorization. Every public method fails soft:
ConfigurationMissingError and ProviderUnavailableError are raised
internally and converted to sentinel results at this boundary, so provider
flakiness never crashes the owning process.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Literal

import httpx

from podhub.app.config import RetryConfig, RunPodConfig
from podhub.app.metrics.collector import PROVIDER_CALL_DURATION, PROVIDER_CALLS_TOTAL
from podhub.core.domain.pod import PodStatus, RemotePod
from podhub.core.errors import (
    ConfigurationMissingError,
    InstanceNotFoundError,
    PodHubError,
    ProviderUnavailableError,
)
from podhub.core.interfaces import PodProvider
from podhub.core.logging_schema import LogEvent
from podhub.core.retryable import with_retry

logger = logging.getLogger(__name__)

_NO_STATUS: frozenset[int] = frozenset()


class RunPodClient(PodProvider):
    """HTTP client for the RunPod REST API."""

    def __init__(
        self,
        config: RunPodConfig,
        retry: RetryConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._retry = retry or RetryConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with bearer token."""
        headers = {"Content-Type": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                headers=self._get_headers(),
                timeout=self._config.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: Literal["get", "post", "delete"],
        path: str,
        *,
        allow: frozenset[int] = _NO_STATUS,
        **kwargs: Any,
    ) -> httpx.Response:
        """Single HTTP request. Raises HTTPStatusError for non-2xx not in allow."""
        client = await self._get_client()
        resp = await client.request(method.upper(), path, **kwargs)
        if resp.status_code in allow:
            return resp
        resp.raise_for_status()
        return resp

    async def _call(
        self,
        operation: str,
        method: Literal["get", "post", "delete"],
        path: str,
        *,
        allow: frozenset[int] = _NO_STATUS,
        retry: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Provider call with credential check, retry policy and metrics.

        Raises:
            ConfigurationMissingError: API key not configured
            ProviderUnavailableError: transport failure or non-2xx status
        """
        if not self._config.api_key:
            raise ConfigurationMissingError()

        start = time.monotonic()
        try:
            if retry:
                return await with_retry(
                    lambda: self._request(method, path, allow=allow, **kwargs),
                    max_retries=self._retry.max_retries,
                    base_delay=self._retry.base_delay,
                    max_delay=self._retry.max_delay,
                )
            return await self._request(method, path, allow=allow, **kwargs)
        except httpx.HTTPStatusError as e:
            raise ProviderUnavailableError(
                f"{operation} returned {e.response.status_code}: {e.response.text[:200]}",
                provider_status=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(
                f"{operation} failed: {type(e).__name__}: {e}"
            ) from e
        finally:
            PROVIDER_CALL_DURATION.labels(operation=operation).observe(
                time.monotonic() - start
            )

    def _log_failure(
        self, operation: str, exc: PodHubError, pod_id: str | None = None
    ) -> None:
        PROVIDER_CALLS_TOTAL.labels(operation=operation, result="failure").inc()
        if isinstance(exc, ConfigurationMissingError):
            logger.error(
                "Provider call aborted: %s",
                exc.message,
                extra={
                    "event": LogEvent.CONFIGURATION_MISSING,
                    "operation": operation,
                    "pod_id": pod_id,
                },
            )
            return
        logger.error(
            "Provider call %s failed: %s",
            operation,
            exc.message,
            extra={
                "event": LogEvent.PROVIDER_UNAVAILABLE,
                "operation": operation,
                "pod_id": pod_id,
                "provider_status": getattr(exc, "provider_status", None),
            },
        )

    @staticmethod
    def _success(operation: str) -> None:
        PROVIDER_CALLS_TOTAL.labels(operation=operation, result="success").inc()

    @staticmethod
    def _parse_pods(data: Any) -> list[RemotePod]:
        if isinstance(data, dict):
            data = data.get("pods", [])
        return [RemotePod.from_api(item) for item in data or []]

    # =========================================================================
    # PodProvider interface
    # =========================================================================

    async def list(self) -> list[RemotePod] | None:
        """List all pods. Empty list is a valid result; None means failure."""
        try:
            resp = await self._call("list", "get", "/pods")
            pods = self._parse_pods(resp.json())
        except PodHubError as e:
            self._log_failure("list", e)
            return None
        except (ValueError, KeyError, TypeError) as e:
            self._log_failure("list", ProviderUnavailableError(f"Malformed pod list: {e}"))
            return None

        self._success("list")
        logger.debug("Listed %d pods", len(pods))
        return pods

    async def create(self, template: dict[str, Any]) -> RemotePod | None:
        """Create a pod. Never retried: a timeout may still have provisioned."""
        try:
            resp = await self._call("create", "post", "/pods", json=template, retry=False)
            pod = RemotePod.from_api(resp.json())
        except PodHubError as e:
            self._log_failure("create", e)
            return None
        except (ValueError, KeyError, TypeError) as e:
            self._log_failure("create", ProviderUnavailableError(f"Malformed create response: {e}"))
            return None

        self._success("create")
        logger.info(
            "Created pod %s",
            pod.id,
            extra={"event": LogEvent.POD_CREATED, "pod_id": pod.id},
        )
        return pod

    async def start(self, pod_id: str) -> bool:
        """Start a pod. Non-2xx (including "already running") returns False."""
        try:
            await self._call("start", "post", f"/pods/{pod_id}/start")
        except PodHubError as e:
            self._log_failure("start", e, pod_id)
            return False

        self._success("start")
        logger.info(
            "Requested start for pod %s",
            pod_id,
            extra={"event": LogEvent.OPERATION_SUCCESS, "pod_id": pod_id},
        )
        return True

    async def stop(self, pod_id: str) -> bool:
        """Stop a pod. 409 (already stopped) is treated as success."""
        try:
            resp = await self._call(
                "stop", "post", f"/pods/{pod_id}/stop", allow=frozenset({409})
            )
        except PodHubError as e:
            self._log_failure("stop", e, pod_id)
            return False

        self._success("stop")
        if resp.status_code == 409:
            logger.info(
                "Pod %s already stopped",
                pod_id,
                extra={"event": LogEvent.POD_STOPPED, "pod_id": pod_id},
            )
        else:
            logger.info(
                "Requested stop for pod %s",
                pod_id,
                extra={"event": LogEvent.POD_STOPPED, "pod_id": pod_id},
            )
        return True

    async def terminate(self, pod_id: str) -> None:
        """Terminate a pod. Best effort: logs failures, never raises."""
        try:
            resp = await self._call(
                "terminate", "post", f"/pods/{pod_id}/terminate", allow=frozenset({404})
            )
        except PodHubError as e:
            self._log_failure("terminate", e, pod_id)
            return

        self._success("terminate")
        if resp.status_code == 404:
            logger.info(
                "Pod %s already gone",
                pod_id,
                extra={"event": LogEvent.POD_NOT_FOUND, "pod_id": pod_id},
            )
            return
        logger.info(
            "Requested termination for pod %s",
            pod_id,
            extra={"event": LogEvent.POD_TERMINATED, "pod_id": pod_id},
        )

    async def describe(self, pod_id: str) -> RemotePod | None:
        """Get a pod.

        Returns:
            The pod; None only if it no longer exists (404). When the
            provider cannot answer, the pod is returned with UNKNOWN status.
        """
        try:
            resp = await self._call(
                "describe", "get", f"/pods/{pod_id}", allow=frozenset({404})
            )
            if resp.status_code == 404:
                raise InstanceNotFoundError(pod_id)
            pod = RemotePod.from_api(resp.json())
        except InstanceNotFoundError as e:
            PROVIDER_CALLS_TOTAL.labels(operation="describe", result="not_found").inc()
            logger.warning(
                "%s, treating as gone",
                e.message,
                extra={"event": LogEvent.POD_NOT_FOUND, "pod_id": pod_id},
            )
            return None
        except PodHubError as e:
            self._log_failure("describe", e, pod_id)
            return RemotePod(id=pod_id, status=PodStatus.UNKNOWN)
        except (ValueError, KeyError, TypeError) as e:
            self._log_failure(
                "describe", ProviderUnavailableError(f"Malformed pod: {e}"), pod_id
            )
            return RemotePod(id=pod_id, status=PodStatus.UNKNOWN)

        self._success("describe")
        return pod
