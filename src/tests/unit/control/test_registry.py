"""Tests for TimerRegistry."""

from podhub.control import TimerRegistry
from podhub.core.timers import Timer


async def _noop(timer: Timer) -> None:
    return None


def _timer(key: str) -> Timer:
    return Timer(10, _noop, kind="cleanup", key=key)


class TestTimerRegistry:
    def test_arm_stores_timer(self) -> None:
        registry = TimerRegistry()
        timer = _timer("a")

        assert registry.arm("a", lambda: timer) is timer
        assert "a" in registry
        assert registry.get("a") is timer
        assert len(registry) == 1

    def test_arm_existing_returns_none(self) -> None:
        """Factory is not called when the pod already has a timer."""
        registry = TimerRegistry()
        registry.arm("a", lambda: _timer("a"))
        calls: list[str] = []

        def factory() -> Timer:
            calls.append("a")
            return _timer("a")

        assert registry.arm("a", factory) is None
        assert calls == []

    def test_cancel_is_idempotent(self) -> None:
        registry = TimerRegistry()
        timer = _timer("a")
        registry.arm("a", lambda: timer)

        assert registry.cancel("a") is True
        assert timer.cancelled
        assert registry.cancel("a") is False
        assert "a" not in registry

    def test_discard_checks_identity(self) -> None:
        registry = TimerRegistry()
        current = _timer("a")
        registry.arm("a", lambda: current)

        assert registry.discard("a", _timer("a")) is False
        assert "a" in registry
        assert registry.discard("a", current) is True
        assert "a" not in registry
        assert not current.cancelled

    def test_cancel_all(self) -> None:
        registry = TimerRegistry()
        timers = [_timer(key) for key in ("a", "b", "c")]
        for timer in timers:
            registry.arm(timer.key, lambda t=timer: t)

        assert registry.cancel_all() == 3
        assert len(registry) == 0
        assert all(t.cancelled for t in timers)

    def test_iteration_allows_mutation(self) -> None:
        registry = TimerRegistry()
        for key in ("a", "b"):
            registry.arm(key, lambda k=key: _timer(k))

        for pod_id in registry:
            registry.cancel(pod_id)

        assert len(registry) == 0
