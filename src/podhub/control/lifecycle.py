"""LifecycleController - active pod state machine.

States:
- EMPTY: no pod in service
- WARM(pod_id, n): pod in service with n registered connections

Transitions:
- register from EMPTY: acquire-or-create -> WARM(id, 1), arm failsafe
- register from WARM: cancel demotion, verify pod with provider, n+1,
  re-arm failsafe. A pod the provider reports gone is swapped for a new
  one and the count carries over; an unreadable status keeps the pod.
- unregister from WARM(id, n>1): n-1
- unregister from WARM(id, 1): n=0, arm demotion (stop)
- demotion fires with n=0: stop pod, keep ID cached for reuse
- failsafe fires regardless of n: terminate pod, back to EMPTY

Two-tier policy: a disconnected pod is stopped first (cheap to resume) and
terminated only when the failsafe expires.

All transitions and timer fires share one asyncio.Lock, so concurrent
registers never provision twice and a cancelled timer that already fired
finds its token invalid and does nothing.
"""

import asyncio
import logging

from podhub.app.config import LifecycleConfig, PodTemplateConfig, ReaperConfig
from podhub.app.metrics.collector import (
    ACTIVE_CONNECTIONS,
    ACTIVE_POD,
    POD_TRANSITIONS_TOTAL,
)
from podhub.control.reaper import IdleReaper
from podhub.core.domain.pod import (
    ActiveSlot,
    PodStatus,
    SessionResult,
    SessionStatus,
    SlotSnapshot,
)
from podhub.core.interfaces import PodProvider
from podhub.core.logging_schema import LogEvent
from podhub.core.timers import Timer, TimerScheduler

logger = logging.getLogger(__name__)

DEMOTION_TIMER = "demotion"
FAILSAFE_TIMER = "failsafe"


class LifecycleController:
    """Owns the active slot and its connection count.

    Constructed once per process and shared with the API layer.
    """

    def __init__(
        self,
        provider: PodProvider,
        scheduler: TimerScheduler,
        *,
        lifecycle: LifecycleConfig | None = None,
        reaper: ReaperConfig | None = None,
        template: PodTemplateConfig | None = None,
    ) -> None:
        self._provider = provider
        self._scheduler = scheduler
        self._config = lifecycle or LifecycleConfig()
        self._template = template or PodTemplateConfig()
        reaper_config = reaper or ReaperConfig()

        self._slot = ActiveSlot()
        self._lock = asyncio.Lock()
        self._reaper = IdleReaper(
            provider,
            scheduler,
            lock=self._lock,
            active_pod_id=lambda: self._slot.pod_id,
            cleanup_after=reaper_config.cleanup_after_seconds,
            interval=reaper_config.interval_seconds,
        )

    @property
    def reaper(self) -> IdleReaper:
        return self._reaper

    @property
    def active_pod_id(self) -> str | None:
        return self._slot.pod_id

    @property
    def connections(self) -> int:
        return self._slot.connections

    def snapshot(self) -> SlotSnapshot:
        slot = self._slot
        return SlotSnapshot(
            pod_id=slot.pod_id,
            connections=slot.connections,
            demotion_pending=slot.demotion_timer is not None and slot.demotion_timer.pending,
            failsafe_pending=slot.failsafe_timer is not None and slot.failsafe_timer.pending,
            cleanup_timers=len(self._reaper.registry),
        )

    # =========================================================================
    # Connection events
    # =========================================================================

    async def register(self) -> SessionResult:
        """Register a client connection, acquiring a pod if needed."""
        async with self._lock:
            self._cancel_demotion()

            if self._slot.pod_id is not None:
                await self._verify_active(self._slot.pod_id)

            if self._slot.pod_id is None:
                logger.info(
                    "No active pod. Acquiring one...",
                    extra={"event": LogEvent.STATE_CHANGED},
                )
                pod_id = await self._acquire_or_create()
                if pod_id is None:
                    self._release_orphaned_connections()
                    logger.error(
                        "Failed to get or create a pod. Cannot register connection.",
                        extra={"event": LogEvent.ACQUIRE_FAILED},
                    )
                    return SessionResult(status=SessionStatus.FAIL)
                self._slot.pod_id = pod_id

            self._slot.connections += 1
            self._arm_failsafe()
            self._update_metrics()
            logger.info(
                "Connection registered. Active connections: %d. Pod: %s",
                self._slot.connections,
                self._slot.pod_id,
                extra={
                    "event": LogEvent.STATE_CHANGED,
                    "pod_id": self._slot.pod_id,
                    "connections": self._slot.connections,
                },
            )
            return SessionResult(status=SessionStatus.SUCCESS, pod_id=self._slot.pod_id)

    async def unregister(self) -> None:
        """Unregister a client connection. Arms demotion on the last one."""
        async with self._lock:
            if self._slot.connections == 0:
                logger.warning(
                    "Unregister with no registered connections, ignoring",
                    extra={"event": LogEvent.STATE_DRIFT},
                )
                return

            self._slot.connections -= 1
            self._update_metrics()
            logger.info(
                "Connection unregistered. Active connections: %d",
                self._slot.connections,
                extra={
                    "event": LogEvent.STATE_CHANGED,
                    "pod_id": self._slot.pod_id,
                    "connections": self._slot.connections,
                },
            )

            if self._slot.connections == 0 and self._slot.pod_id is not None:
                self._arm_demotion()

    # =========================================================================
    # Acquire
    # =========================================================================

    async def _verify_active(self, pod_id: str) -> None:
        """Check the cached pod against the provider, detaching it if gone.

        A pod whose status cannot be read is kept. Only a 404 or TERMINATED
        status counts as gone.
        """
        pod = await self._provider.describe(pod_id)
        if pod is None or pod.is_terminated:
            logger.warning(
                "Active pod %s is gone at the provider",
                pod_id,
                extra={"event": LogEvent.STATE_DRIFT, "pod_id": pod_id},
            )
            self._drop_stale()
            return

        if pod.status == PodStatus.UNKNOWN:
            logger.warning(
                "Could not verify active pod %s, keeping it",
                pod_id,
                extra={"event": LogEvent.PROVIDER_UNAVAILABLE, "pod_id": pod_id},
            )
            return

        if pod.status == PodStatus.STOPPED:
            logger.info(
                "Active pod %s is stopped, restarting",
                pod_id,
                extra={"event": LogEvent.STATE_CHANGED, "pod_id": pod_id},
            )
            if not await self._provider.start(pod_id):
                logger.warning(
                    "Failed to restart pod %s, replacing it",
                    pod_id,
                    extra={"event": LogEvent.STATE_DRIFT, "pod_id": pod_id},
                )
                self._drop_stale()
                self._reaper.schedule_cleanup([pod])
                return
            POD_TRANSITIONS_TOTAL.labels(transition="resumed").inc()
            await self._scheduler.sleep(self._config.settle_seconds)

    def _drop_stale(self) -> None:
        """Detach the active pod, keeping the connection count.

        Clients counted against the old pod unregister later against its
        replacement.
        """
        pod_id = self._slot.pod_id
        self._slot.detach()
        self._update_metrics()
        POD_TRANSITIONS_TOTAL.labels(transition="drift").inc()
        logger.info(
            "Dropped stale pod %s from active slot (%d connections carried over)",
            pod_id,
            self._slot.connections,
            extra={"event": LogEvent.STATE_DRIFT, "pod_id": pod_id},
        )

    def _release_orphaned_connections(self) -> None:
        if self._slot.connections == 0:
            return
        logger.warning(
            "No pod to carry %d connections, resetting count",
            self._slot.connections,
            extra={"event": LogEvent.STATE_DRIFT},
        )
        self._slot.connections = 0
        self._update_metrics()

    async def _acquire_or_create(self) -> str | None:
        """Reuse the first pod that starts, otherwise create one.

        Every pod not chosen is handed to the reaper.
        """
        pods = await self._provider.list()
        if pods is None:
            pods = []

        chosen: str | None = None
        for pod in pods:
            if pod.is_terminated:
                continue
            logger.info(
                "Found reusable pod %s. Attempting to start...",
                pod.id,
                extra={"pod_id": pod.id},
            )
            if await self._provider.start(pod.id):
                chosen = pod.id
                self._reaper.release(chosen)
                POD_TRANSITIONS_TOTAL.labels(transition="acquired").inc()
                logger.info(
                    "Restarted existing pod %s",
                    chosen,
                    extra={"event": LogEvent.POD_ACQUIRED, "pod_id": chosen},
                )
                break

        self._reaper.schedule_cleanup(pods, exclude=chosen)

        if chosen is None:
            logger.info("No reusable pod found. Creating a new one...")
            created = await self._provider.create(self._template.to_payload())
            if created is None:
                return None
            if created.status not in (PodStatus.RUNNING, PodStatus.UNKNOWN):
                await self._provider.start(created.id)
            chosen = created.id
            POD_TRANSITIONS_TOTAL.labels(transition="created").inc()
            logger.info(
                "Created new pod %s",
                chosen,
                extra={"event": LogEvent.POD_ACQUIRED, "pod_id": chosen},
            )

        return chosen

    # =========================================================================
    # Timers
    # =========================================================================

    def _cancel_demotion(self) -> None:
        timer = self._slot.demotion_timer
        if timer is None:
            return
        timer.cancel()
        self._slot.demotion_timer = None
        logger.info(
            "Active pod demotion timer cancelled due to new activity",
            extra={"event": LogEvent.TIMER_CANCELLED, "pod_id": self._slot.pod_id},
        )

    def _arm_demotion(self) -> None:
        self._cancel_demotion()
        self._slot.demotion_timer = self._scheduler.call_later(
            self._config.demotion_seconds,
            self._on_demotion,
            kind=DEMOTION_TIMER,
            key=self._slot.pod_id,
        )
        logger.info(
            "Last connection closed. Stopping pod in %.0f minutes",
            self._config.demotion_seconds / 60,
            extra={"event": LogEvent.TIMER_ARMED, "pod_id": self._slot.pod_id},
        )

    def _arm_failsafe(self) -> None:
        if self._slot.failsafe_timer is not None:
            self._slot.failsafe_timer.cancel()
        self._slot.failsafe_timer = self._scheduler.call_later(
            self._config.failsafe_seconds,
            self._on_failsafe,
            kind=FAILSAFE_TIMER,
            key=self._slot.pod_id,
        )
        logger.debug(
            "Failsafe termination set for %.0f minutes",
            self._config.failsafe_seconds / 60,
            extra={"event": LogEvent.TIMER_ARMED, "pod_id": self._slot.pod_id},
        )

    async def _on_demotion(self, timer: Timer) -> None:
        async with self._lock:
            if timer.cancelled or timer is not self._slot.demotion_timer:
                return
            self._slot.demotion_timer = None
            pod_id = self._slot.pod_id
            if self._slot.connections != 0 or pod_id is None:
                return

            logger.info(
                "Demotion timer expired, stopping pod %s",
                pod_id,
                extra={"event": LogEvent.TIMER_FIRED, "pod_id": pod_id},
            )
            if await self._provider.stop(pod_id):
                POD_TRANSITIONS_TOTAL.labels(transition="demoted").inc()
                return

            # Retry on the next demotion period; the failsafe bounds the cost
            logger.warning(
                "Failed to stop pod %s, re-arming demotion",
                pod_id,
                extra={"event": LogEvent.OPERATION_FAILED, "pod_id": pod_id},
            )
            self._arm_demotion()

    async def _on_failsafe(self, timer: Timer) -> None:
        async with self._lock:
            if timer.cancelled or timer is not self._slot.failsafe_timer:
                return
            pod_id = self._slot.pod_id
            logger.warning(
                "Failsafe timer expired, terminating pod %s (connections=%d)",
                pod_id,
                self._slot.connections,
                extra={
                    "event": LogEvent.TIMER_FIRED,
                    "pod_id": pod_id,
                    "connections": self._slot.connections,
                },
            )
            self._slot.failsafe_timer = None
            self._slot.reset()
            self._update_metrics()
            POD_TRANSITIONS_TOTAL.labels(transition="terminated").inc()
            if pod_id is not None:
                await self._provider.terminate(pod_id)

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def close(self) -> None:
        """Cancel every local timer. Remote pods are left as they are."""
        async with self._lock:
            if self._slot.demotion_timer is not None:
                self._slot.demotion_timer.cancel()
                self._slot.demotion_timer = None
            if self._slot.failsafe_timer is not None:
                self._slot.failsafe_timer.cancel()
                self._slot.failsafe_timer = None
            self._reaper.stop()

    def _update_metrics(self) -> None:
        ACTIVE_CONNECTIONS.set(self._slot.connections)
        ACTIVE_POD.set(0 if self._slot.pod_id is None else 1)
