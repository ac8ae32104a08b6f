"""TimerRegistry - pod ID to pending cleanup timer.

At most one timer per pod. The active pod never has an entry: its timers
live on the ActiveSlot.
"""

from collections.abc import Callable, Iterator

from podhub.core.timers import Timer


class TimerRegistry:
    """Process-wide table of known pod IDs and their cleanup timers."""

    def __init__(self) -> None:
        self._timers: dict[str, Timer] = {}

    def __contains__(self, pod_id: object) -> bool:
        return pod_id in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._timers))

    def get(self, pod_id: str) -> Timer | None:
        return self._timers.get(pod_id)

    def arm(self, pod_id: str, factory: Callable[[], Timer]) -> Timer | None:
        """Create and store a timer unless one already exists.

        Returns:
            The new timer, or None if the pod already had one.
        """
        if pod_id in self._timers:
            return None
        timer = factory()
        self._timers[pod_id] = timer
        return timer

    def cancel(self, pod_id: str) -> bool:
        """Cancel and forget the pod's timer. Idempotent."""
        timer = self._timers.pop(pod_id, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def discard(self, pod_id: str, timer: Timer) -> bool:
        """Forget the entry only if it still holds this exact timer."""
        if self._timers.get(pod_id) is not timer:
            return False
        del self._timers[pod_id]
        return True

    def cancel_all(self) -> int:
        count = 0
        for pod_id in list(self._timers):
            if self.cancel(pod_id):
                count += 1
        return count
