"""Fixtures for unit tests."""

from unittest.mock import AsyncMock

import pytest

from podhub.app.config import LifecycleConfig, PodTemplateConfig, ReaperConfig
from podhub.control import LifecycleController
from podhub.core.domain import PodStatus, RemotePod
from podhub.core.interfaces import PodProvider
from tests.fakes import ManualScheduler


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def mock_provider() -> AsyncMock:
    """PodProvider mock: empty account, create/start/stop succeed."""
    provider = AsyncMock(spec=PodProvider)
    provider.list = AsyncMock(return_value=[])
    provider.create = AsyncMock(
        return_value=RemotePod(id="new-pod", status=PodStatus.RUNNING)
    )
    provider.start = AsyncMock(return_value=True)
    provider.stop = AsyncMock(return_value=True)
    provider.terminate = AsyncMock(return_value=None)
    provider.describe = AsyncMock(
        side_effect=lambda pod_id: RemotePod(id=pod_id, status=PodStatus.RUNNING)
    )
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def lifecycle_config() -> LifecycleConfig:
    return LifecycleConfig(failsafe_seconds=1800, demotion_seconds=300, settle_seconds=5)


@pytest.fixture
def reaper_config() -> ReaperConfig:
    return ReaperConfig(interval_seconds=300, cleanup_after_seconds=1800)


@pytest.fixture
def controller(
    mock_provider: AsyncMock,
    scheduler: ManualScheduler,
    lifecycle_config: LifecycleConfig,
    reaper_config: ReaperConfig,
) -> LifecycleController:
    return LifecycleController(
        mock_provider,
        scheduler,
        lifecycle=lifecycle_config,
        reaper=reaper_config,
        template=PodTemplateConfig(),
    )
