"""Pod provider interface for remote GPU rental APIs."""

from abc import ABC, abstractmethod
from typing import Any

from podhub.core.domain.pod import RemotePod


class PodProvider(ABC):
    """Interface for remote pod management.

    Every method fails soft: transport and HTTP errors are logged and
    converted to the documented sentinel, never raised.

    Implementations: RunPodClient
    """

    @abstractmethod
    async def list(self) -> list[RemotePod] | None:
        """List all pods on the account.

        Returns:
            Pods (possibly empty), or None if the provider was unreachable
        """
        ...

    @abstractmethod
    async def create(self, template: dict[str, Any]) -> RemotePod | None:
        """Create a pod from a provisioning template.

        Returns:
            Created pod, or None on failure
        """
        ...

    @abstractmethod
    async def start(self, pod_id: str) -> bool:
        """Start a stopped pod. False on any non-2xx ("already running" included)."""
        ...

    @abstractmethod
    async def stop(self, pod_id: str) -> bool:
        """Stop a pod. Already stopped (409) counts as success."""
        ...

    @abstractmethod
    async def terminate(self, pod_id: str) -> None:
        """Best-effort terminate. Callers must not assume the pod is gone."""
        ...

    @abstractmethod
    async def describe(self, pod_id: str) -> RemotePod | None:
        """Get a single pod.

        Returns:
            Pod, or None if it no longer exists. A provider that cannot
            answer yields the pod with PodStatus.UNKNOWN, never None.
        """
        ...

    async def close(self) -> None:
        """Release client resources."""
        return None
