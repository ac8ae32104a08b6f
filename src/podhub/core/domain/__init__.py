"""Domain models."""

from podhub.core.domain.pod import (
    ActiveSlot,
    ConnectionAction,
    PodStatus,
    RemotePod,
    SessionResult,
    SessionStatus,
    SlotSnapshot,
)

__all__ = [
    "ActiveSlot",
    "ConnectionAction",
    "PodStatus",
    "RemotePod",
    "SessionResult",
    "SessionStatus",
    "SlotSnapshot",
]
