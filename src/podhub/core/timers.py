"""Cancellation-token timers.

A Timer is both the scheduling handle and the token its callback checks.
cancel() is idempotent and may be called before, during or after firing.
Callbacks receive their own Timer and must re-check ``timer.cancelled``
(and identity against whatever slot holds it) while holding the lock that
guards the state they mutate. Under that lock, a cancelled timer that
already fired becomes a no-op.

Usage:
    scheduler = AsyncioTimerScheduler()

    async def on_fire(timer: Timer) -> None:
        async with lock:
            if timer.cancelled or timer is not current_timer:
                return
            ...

    timer = scheduler.call_later(300, on_fire, kind="demotion", key=pod_id)
    timer.cancel()
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from podhub.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

TimerCallback = Callable[["Timer"], Awaitable[None]]


class Timer:
    """Delayed callback handle and cancellation token."""

    def __init__(
        self,
        delay: float,
        callback: TimerCallback,
        *,
        kind: str,
        key: str | None = None,
    ) -> None:
        self.delay = delay
        self.kind = kind
        self.key = key
        self._callback = callback
        self._cancelled = False
        self._fired = False
        self._handle: Any = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def pending(self) -> bool:
        """True while neither fired nor cancelled."""
        return not self._cancelled and not self._fired

    def bind(self, handle: Any) -> None:
        """Attach the scheduler's underlying handle (cancelled with the timer)."""
        self._handle = handle

    def cancel(self) -> bool:
        """Cancel the timer. Returns True if it was still pending."""
        was_pending = self.pending
        self._cancelled = True
        if self._handle is not None and hasattr(self._handle, "cancel"):
            self._handle.cancel()
        return was_pending

    def mark_fired(self) -> bool:
        """Mark as fired. Returns False if already cancelled or fired."""
        if not self.pending:
            return False
        self._fired = True
        return True

    async def run(self) -> None:
        await self._callback(self)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "fired" if self._fired else "pending"
        return f"Timer(kind={self.kind!r}, key={self.key!r}, delay={self.delay}, {state})"


class TimerScheduler(ABC):
    """Interface for delayed callbacks.

    Implementations: AsyncioTimerScheduler (event loop); tests use a
    manually advanced scheduler.
    """

    @abstractmethod
    def call_later(
        self,
        delay: float,
        callback: TimerCallback,
        *,
        kind: str,
        key: str | None = None,
    ) -> Timer:
        """Schedule callback(timer) after delay seconds."""
        ...

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the caller (settle delays)."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Cancel in-flight callbacks."""
        ...


class AsyncioTimerScheduler(TimerScheduler):
    """TimerScheduler on the running asyncio loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    def call_later(
        self,
        delay: float,
        callback: TimerCallback,
        *,
        kind: str,
        key: str | None = None,
    ) -> Timer:
        loop = asyncio.get_running_loop()
        timer = Timer(delay, callback, kind=kind, key=key)
        timer.bind(loop.call_later(delay, self._fire, timer))
        return timer

    def _fire(self, timer: Timer) -> None:
        if not timer.mark_fired():
            return
        task = asyncio.create_task(self._run(timer), name=f"timer-{timer.kind}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, timer: Timer) -> None:
        try:
            await timer.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(
                "Timer callback failed: %s",
                e,
                extra={"event": LogEvent.TIMER_FIRED, "kind": timer.kind, "key": timer.key},
            )

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def close(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
