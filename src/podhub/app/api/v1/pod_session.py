"""Pod session API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from podhub.app.config import EndpointConfig, get_settings
from podhub.app.dependencies import get_controller
from podhub.control import LifecycleController
from podhub.core.domain import ConnectionAction
from podhub.core.errors import InvalidActionError
from podhub.services import pod_session
from podhub.services.pod_session import SessionResponse

router = APIRouter(tags=["pod-session"])

Controller = Annotated[LifecycleController, Depends(get_controller)]


def get_endpoint_config() -> EndpointConfig:
    return get_settings().endpoint


Endpoint = Annotated[EndpointConfig, Depends(get_endpoint_config)]


# =============================================================================
# Request/Response Models
# =============================================================================


class PodSessionRequest(BaseModel):
    """Connection event. Unknown actions are rejected with 400."""

    action: str


class SlotStatusResponse(BaseModel):
    pod_id: str | None
    connections: int
    demotion_pending: bool
    failsafe_pending: bool
    cleanup_timers: int


class WebSocketUrlResponse(BaseModel):
    url: str


class WorkloadHealthResponse(BaseModel):
    status: str  # online, offline


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "/pod-session",
    response_model=SessionResponse,
    response_model_exclude_none=True,
)
async def pod_session_action(
    request: PodSessionRequest, controller: Controller, endpoint: Endpoint
) -> SessionResponse:
    """Notify the server about a client's connection status."""
    try:
        action = ConnectionAction(request.action)
    except ValueError:
        raise InvalidActionError() from None

    if action == ConnectionAction.REGISTER:
        return await pod_session.register_connection(controller, endpoint)
    return await pod_session.unregister_connection(controller)


@router.get("/pod-session", response_model=SlotStatusResponse)
async def pod_session_status(controller: Controller) -> SlotStatusResponse:
    """Current active slot."""
    snap = controller.snapshot()
    return SlotStatusResponse(
        pod_id=snap.pod_id,
        connections=snap.connections,
        demotion_pending=snap.demotion_pending,
        failsafe_pending=snap.failsafe_pending,
        cleanup_timers=snap.cleanup_timers,
    )


@router.get("/websocket-url", response_model=WebSocketUrlResponse)
async def get_websocket_url(
    controller: Controller, endpoint: Endpoint
) -> WebSocketUrlResponse:
    """WebSocket URL of the active pod. 404 if none is active."""
    return WebSocketUrlResponse(url=pod_session.websocket_url(controller, endpoint))


@router.get("/healthcheck", response_model=WorkloadHealthResponse)
async def healthcheck(controller: Controller, endpoint: Endpoint) -> WorkloadHealthResponse:
    """Check the active pod's workload."""
    online = await pod_session.check_workload(controller, endpoint)
    return WorkloadHealthResponse(status="online" if online else "offline")
