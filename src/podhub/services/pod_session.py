"""Pod session service.

Boundary between inbound connection events and the LifecycleController:
- register: acquire/keep-warm the active pod, return its endpoint URL
- unregister: always succeeds from the client's point of view
- websocket_url / check_workload: read-only helpers for the active pod
"""

import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field

from podhub.app.config import EndpointConfig
from podhub.control.lifecycle import LifecycleController
from podhub.core.errors import PodNotActiveError
from podhub.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


class SessionResponse(BaseModel):
    """Pod-session response contract."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    instance_id: str | None = Field(default=None, alias="instanceId")
    endpoint_url: str | None = Field(default=None, alias="endpointURL")


async def register_connection(
    controller: LifecycleController, endpoint: EndpointConfig
) -> SessionResponse:
    """Register a client connection against the active pod."""
    result = await controller.register()
    if not result.ok or result.pod_id is None:
        return SessionResponse(success=False, message="Connection failed.")
    return SessionResponse(
        success=True,
        message="Connection registered.",
        instance_id=result.pod_id,
        endpoint_url=endpoint.websocket_url(result.pod_id),
    )


async def unregister_connection(controller: LifecycleController) -> SessionResponse:
    """Unregister a client connection.

    Never reports failure: demotion problems are handled by the controller.
    """
    try:
        await controller.unregister()
    except Exception as e:
        logger.exception(
            "Unregister failed: %s",
            e,
            extra={"event": LogEvent.OPERATION_FAILED},
        )
    return SessionResponse(success=True, message="Connection unregistered.")


def websocket_url(controller: LifecycleController, endpoint: EndpointConfig) -> str:
    """Endpoint URL of the active pod.

    Raises:
        PodNotActiveError: No pod is in the active slot
    """
    pod_id = controller.active_pod_id
    if pod_id is None:
        raise PodNotActiveError()
    return endpoint.websocket_url(pod_id)


async def check_workload(
    controller: LifecycleController,
    endpoint: EndpointConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Check the active pod's workload through the provider proxy.

    Returns:
        True if the metrics endpoint answered 2xx, False otherwise
        (including when no pod is active).
    """
    pod_id = controller.active_pod_id
    if pod_id is None:
        return False

    url = endpoint.health_url(pod_id)
    try:
        async with httpx.AsyncClient(
            timeout=endpoint.health_timeout, transport=transport
        ) as client:
            resp = await client.get(url)
    except httpx.HTTPError as e:
        logger.info(
            "Error while doing health check: %s",
            e,
            extra={"pod_id": pod_id},
        )
        return False
    return resp.is_success
