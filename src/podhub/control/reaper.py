"""IdleReaper - orphan pod cleanup.

Per-pod timer policy fed by a periodic sweep:
- Every pod listed by the provider that is not the active pod and has no
  timer gets a termination timer (cleanup_after seconds).
- The timer is cancelled if the pod becomes active.
- Timers for pods the provider no longer lists are dropped.

The active pod is never touched. Timer fires run under the lifecycle lock
and re-check the active pod before terminating.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable

from podhub.app.metrics.collector import REAPER_PENDING_TIMERS, REAPER_TERMINATIONS_TOTAL
from podhub.control.registry import TimerRegistry
from podhub.core.domain.pod import RemotePod
from podhub.core.interfaces import PodProvider
from podhub.core.logging_schema import LogEvent
from podhub.core.timers import Timer, TimerScheduler

logger = logging.getLogger(__name__)

CLEANUP_TIMER = "cleanup"


class IdleReaper:
    """Arms and fires termination timers for pods outside the active slot."""

    def __init__(
        self,
        provider: PodProvider,
        scheduler: TimerScheduler,
        *,
        lock: asyncio.Lock,
        active_pod_id: Callable[[], str | None],
        cleanup_after: float = 1800.0,
        interval: float = 300.0,
        registry: TimerRegistry | None = None,
    ) -> None:
        self._provider = provider
        self._scheduler = scheduler
        self._lock = lock
        self._active_pod_id = active_pod_id
        self._cleanup_after = cleanup_after
        self._interval = interval
        self._registry = registry if registry is not None else TimerRegistry()
        self._running = False

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def registry(self) -> TimerRegistry:
        return self._registry

    def schedule_cleanup(
        self, pods: Iterable[RemotePod], exclude: str | None = None
    ) -> int:
        """Arm a termination timer for every unaccounted pod.

        Caller must hold the lifecycle lock.

        Returns:
            Number of timers newly armed.
        """
        active = self._active_pod_id()
        armed = 0
        for pod in pods:
            if pod.id in (exclude, active) or pod.is_terminated:
                continue
            timer = self._registry.arm(pod.id, lambda pod_id=pod.id: self._arm(pod_id))
            if timer is None:
                continue
            armed += 1
            logger.info(
                "[%s] Scheduling %.0f-minute termination for idle pod %s",
                self.name,
                self._cleanup_after / 60,
                pod.id,
                extra={
                    "event": LogEvent.CLEANUP_SCHEDULED,
                    "pod_id": pod.id,
                },
            )
        REAPER_PENDING_TIMERS.set(len(self._registry))
        return armed

    def release(self, pod_id: str) -> bool:
        """Cancel a pod's cleanup timer (it is becoming active)."""
        cancelled = self._registry.cancel(pod_id)
        if cancelled:
            logger.info(
                "[%s] Cancelled cleanup for reactivated pod %s",
                self.name,
                pod_id,
                extra={
                    "event": LogEvent.TIMER_CANCELLED,
                    "pod_id": pod_id,
                },
            )
        REAPER_PENDING_TIMERS.set(len(self._registry))
        return cancelled

    def _arm(self, pod_id: str) -> Timer:
        return self._scheduler.call_later(
            self._cleanup_after, self._on_cleanup, kind=CLEANUP_TIMER, key=pod_id
        )

    async def _on_cleanup(self, timer: Timer) -> None:
        pod_id = timer.key
        if pod_id is None:
            return
        async with self._lock:
            if timer.cancelled or not self._registry.discard(pod_id, timer):
                return
            REAPER_PENDING_TIMERS.set(len(self._registry))
            if pod_id == self._active_pod_id():
                logger.info(
                    "[%s] Pod %s became active, skipping cleanup",
                    self.name,
                    pod_id,
                    extra={"pod_id": pod_id},
                )
                return
            logger.info(
                "[%s] Idle timer expired for pod %s",
                self.name,
                pod_id,
                extra={
                    "event": LogEvent.TIMER_FIRED,
                    "pod_id": pod_id,
                },
            )
            await self._provider.terminate(pod_id)
            REAPER_TERMINATIONS_TOTAL.inc()

    async def sweep(self) -> int:
        """List pods and reconcile cleanup timers against them.

        Returns:
            Number of timers newly armed (0 when the provider is unreachable).
        """
        pods = await self._provider.list()
        if pods is None:
            logger.warning(
                "[%s] Provider unavailable, skipping sweep",
                self.name,
                extra={"event": LogEvent.PROVIDER_UNAVAILABLE},
            )
            return 0

        async with self._lock:
            listed = {pod.id for pod in pods if not pod.is_terminated}
            gone = [pod_id for pod_id in self._registry if pod_id not in listed]
            for pod_id in gone:
                self._registry.cancel(pod_id)
            armed = self.schedule_cleanup(pods)

        logger.info(
            "[%s] Sweep complete: %d pods, %d newly scheduled, %d forgotten",
            self.name,
            len(pods),
            armed,
            len(gone),
            extra={"event": LogEvent.SWEEP_COMPLETE},
        )
        return armed

    async def run(self) -> None:
        """Main sweep loop."""
        self._running = True
        logger.info(
            "[%s] Starting reaper (interval=%.0fs)",
            self.name,
            self._interval,
            extra={"event": LogEvent.APP_STARTED},
        )
        try:
            while self._running:
                start = time.monotonic()
                try:
                    await self.sweep()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception("[%s] Error in sweep: %s", self.name, e)
                elapsed = time.monotonic() - start
                await self._scheduler.sleep(max(0.0, self._interval - elapsed))
        finally:
            self._running = False
            logger.info(
                "[%s] Reaper stopped",
                self.name,
                extra={"event": LogEvent.APP_STOPPED},
            )

    def stop(self) -> int:
        """Stop the loop and cancel all pending cleanup timers."""
        self._running = False
        cancelled = self._registry.cancel_all()
        REAPER_PENDING_TIMERS.set(0)
        return cancelled
