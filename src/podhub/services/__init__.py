"""Services module."""

from podhub.services import pod_session

__all__ = ["pod_session"]
