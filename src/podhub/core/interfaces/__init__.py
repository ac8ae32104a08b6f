"""Core interfaces."""

from podhub.core.interfaces.provider import PodProvider

__all__ = ["PodProvider"]
