"""HTTP middleware."""

from podhub.app.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
