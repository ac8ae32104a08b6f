"""API dependencies for dependency injection."""

from podhub.app.config import Settings, get_settings
from podhub.control import LifecycleController
from podhub.core.interfaces import PodProvider
from podhub.core.timers import AsyncioTimerScheduler, TimerScheduler
from podhub.provider import RunPodClient

# Process-wide singletons
_provider: PodProvider | None = None
_scheduler: TimerScheduler | None = None
_controller: LifecycleController | None = None


def init_controller(settings: Settings | None = None) -> LifecycleController:
    """Build provider, scheduler and controller.

    Must be called during app startup, inside the running event loop.
    """
    global _provider, _scheduler, _controller
    settings = settings or get_settings()
    _provider = RunPodClient(settings.runpod, settings.retry)
    _scheduler = AsyncioTimerScheduler()
    _controller = LifecycleController(
        _provider,
        _scheduler,
        lifecycle=settings.lifecycle,
        reaper=settings.reaper,
        template=settings.pod_template,
    )
    return _controller


async def close_controller() -> None:
    """Cancel timers and release the provider client."""
    global _provider, _scheduler, _controller
    if _controller:
        await _controller.close()
    if _scheduler:
        await _scheduler.close()
    if _provider:
        await _provider.close()
    _provider = None
    _scheduler = None
    _controller = None


def get_controller() -> LifecycleController:
    """Get controller singleton.

    Raises:
        RuntimeError: If called before init_controller().
    """
    if _controller is None:
        raise RuntimeError("Controller not initialized. Call init_controller() first.")
    return _controller


def reset_controller() -> None:
    """Reset singletons without closing them (for testing)."""
    global _provider, _scheduler, _controller
    _provider = None
    _scheduler = None
    _controller = None
