"""Remote pod provider clients."""

from podhub.provider.runpod import RunPodClient

__all__ = ["RunPodClient"]
