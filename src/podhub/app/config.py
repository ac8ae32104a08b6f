"""Application configuration using pydantic-settings.

Read once at process start. There is no hot reload: changing the API key or
the provisioning template requires a restart.
"""

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RunPodConfig(BaseSettings):
    """RunPod REST API access."""

    model_config = SettingsConfigDict(env_prefix="RUNPOD_")

    # Empty default: provider calls are aborted until a key is configured
    api_key: str = Field(default="")
    base_url: str = Field(default="https://rest.runpod.io/v1")
    timeout: float = Field(default=30.0)  # seconds per provider call


class PodTemplateConfig(BaseSettings):
    """Provisioning template used when no existing pod can be reused."""

    model_config = SettingsConfigDict(env_prefix="POD_TEMPLATE_")

    cloud_type: str = Field(default="SECURE")
    name: str = Field(default="podhub on-demand pod")
    gpu_type_ids: list[str] = Field(default=["NVIDIA GeForce RTX 4090"])
    gpu_count: int = Field(default=1)
    container_disk_in_gb: int = Field(default=20)
    volume_in_gb: int = Field(default=20)
    ports: list[str] = Field(default=["8000/http", "22/tcp"])
    template_id: str = Field(default="ogn0w7m9jb")

    def to_payload(self) -> dict[str, Any]:
        """Render the template as the RunPod create-pod request body."""
        return {
            "cloudType": self.cloud_type,
            "name": self.name,
            "gpuTypeIds": list(self.gpu_type_ids),
            "gpuCount": self.gpu_count,
            "containerDiskInGb": self.container_disk_in_gb,
            "volumeInGb": self.volume_in_gb,
            "ports": list(self.ports),
            "templateId": self.template_id,
        }


class EndpointConfig(BaseSettings):
    """Workload endpoint exposed through the provider proxy.

    URL pattern: {scheme}://{pod_id}-{port}.{domain}/{path}
    """

    model_config = SettingsConfigDict(env_prefix="ENDPOINT_")

    scheme: str = Field(default="wss")
    port: int = Field(default=8000)
    domain: str = Field(default="proxy.runpod.net")
    path: str = Field(default="v1/realtime")
    health_path: str = Field(default="metrics")
    health_timeout: float = Field(default=5.0)  # seconds

    def websocket_url(self, pod_id: str) -> str:
        return f"{self.scheme}://{pod_id}-{self.port}.{self.domain}/{self.path.lstrip('/')}"

    def health_url(self, pod_id: str) -> str:
        return f"https://{pod_id}-{self.port}.{self.domain}/{self.health_path.lstrip('/')}"


class LifecycleConfig(BaseSettings):
    """Active pod timing."""

    model_config = SettingsConfigDict(env_prefix="LIFECYCLE_")

    failsafe_seconds: float = Field(default=1800.0)  # 30 minutes, hard cost ceiling
    demotion_seconds: float = Field(default=300.0)  # 5 minutes after last disconnect
    settle_seconds: float = Field(default=5.0)  # wait after restarting a stopped pod


class ReaperConfig(BaseSettings):
    """Idle pod cleanup."""

    model_config = SettingsConfigDict(env_prefix="REAPER_")

    enabled: bool = Field(default=True)
    interval_seconds: float = Field(default=300.0)  # 5 minutes between sweeps
    cleanup_after_seconds: float = Field(default=1800.0)  # 30 minutes per idle pod


class RetryConfig(BaseSettings):
    """Retry policy for idempotent provider calls.

    max_retries=0 keeps single-shot behavior: a failed call is logged and
    the state machine proceeds. Pod creation is never retried.
    """

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_retries: int = Field(default=0)
    base_delay: float = Field(default=1.0)  # seconds
    max_delay: float = Field(default=30.0)  # seconds


class MetricsConfig(BaseSettings):
    """Prometheus metrics configuration."""

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    enabled: bool = Field(default=True)


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Standard fields added to all logs:
    - schema_version: Log schema version for backwards compatibility
    - service: Service name (podhub)
    """

    model_config = SettingsConfigDict(env_prefix="LOGGING_")

    level: str = Field(default="INFO")
    schema_version: str = Field(default="1.0")
    slow_threshold_ms: float = Field(default=1000.0)
    service_name: str = Field(default="podhub")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PODHUB_",
        env_nested_delimiter="__",
    )

    runpod: RunPodConfig = Field(default_factory=RunPodConfig)
    pod_template: PodTemplateConfig = Field(default_factory=PodTemplateConfig)
    endpoint: EndpointConfig = Field(default_factory=EndpointConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    reaper: ReaperConfig = Field(default_factory=ReaperConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


@lru_cache
def get_settings() -> Settings:
    return Settings()
