"""API v1 module."""

from podhub.app.api.v1.pod_session import router as pod_session_router

__all__ = ["pod_session_router"]
