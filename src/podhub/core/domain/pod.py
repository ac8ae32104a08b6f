"""Pod domain model.

RemotePod is a cached view of a provider-owned pod. ActiveSlot is the
single pod the process currently keeps in service for client connections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from podhub.core.timers import Timer


class PodStatus(StrEnum):
    """Power state reported by the provider."""

    RUNNING = "RUNNING"
    STOPPED = "STOPPED"
    TERMINATED = "TERMINATED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_provider(cls, value: str | None) -> PodStatus:
        """Map RunPod desiredStatus to PodStatus.

        RunPod reports stopped pods as EXITED.
        """
        if not value:
            return cls.UNKNOWN
        value = value.upper()
        if value == "RUNNING":
            return cls.RUNNING
        if value in ("EXITED", "STOPPED"):
            return cls.STOPPED
        if value == "TERMINATED":
            return cls.TERMINATED
        return cls.UNKNOWN


class ConnectionAction(StrEnum):
    """Inbound client connection events."""

    REGISTER = "register"
    UNREGISTER = "unregister"


class SessionStatus(StrEnum):
    SUCCESS = "success"
    FAIL = "fail"


@dataclass(frozen=True)
class RemotePod:
    """Provider pod observation."""

    id: str
    status: PodStatus = PodStatus.UNKNOWN
    name: str | None = None
    gpu_type: str | None = None
    container_disk_in_gb: int | None = None
    volume_in_gb: int | None = None
    ports: tuple[str, ...] = ()
    template_id: str | None = None
    image_name: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RemotePod:
        """Build from a RunPod REST pod object."""
        machine = data.get("machine") or {}
        gpu = data.get("gpu") or {}
        ports = data.get("ports") or ()
        return cls(
            id=str(data["id"]),
            status=PodStatus.from_provider(data.get("desiredStatus")),
            name=data.get("name"),
            gpu_type=gpu.get("displayName") or machine.get("gpuTypeId"),
            container_disk_in_gb=data.get("containerDiskInGb"),
            volume_in_gb=data.get("volumeInGb"),
            ports=tuple(ports),
            template_id=data.get("templateId"),
            image_name=data.get("image") or data.get("imageName"),
        )

    @property
    def is_running(self) -> bool:
        return self.status == PodStatus.RUNNING

    @property
    def is_terminated(self) -> bool:
        return self.status == PodStatus.TERMINATED


@dataclass
class ActiveSlot:
    """The pod currently in service.

    Invariant: connections > 0 implies pod_id is not None.
    """

    pod_id: str | None = None
    connections: int = 0
    demotion_timer: Timer | None = field(default=None, repr=False)
    failsafe_timer: Timer | None = field(default=None, repr=False)

    @property
    def is_empty(self) -> bool:
        return self.pod_id is None

    def detach(self) -> None:
        """Cancel slot timers and forget the pod, keeping the count.

        Leaves connections > 0 with no pod; the caller must attach a
        replacement or zero the count before releasing its lock.
        """
        if self.demotion_timer is not None:
            self.demotion_timer.cancel()
        if self.failsafe_timer is not None:
            self.failsafe_timer.cancel()
        self.pod_id = None
        self.demotion_timer = None
        self.failsafe_timer = None

    def reset(self) -> None:
        """Cancel slot timers and return to EMPTY."""
        self.detach()
        self.connections = 0


@dataclass(frozen=True)
class SessionResult:
    """Outcome of a register call."""

    status: SessionStatus
    pod_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == SessionStatus.SUCCESS and self.pod_id is not None


@dataclass(frozen=True)
class SlotSnapshot:
    """Read-only view of the active slot."""

    pod_id: str | None
    connections: int
    demotion_pending: bool
    failsafe_pending: bool
    cleanup_timers: int
