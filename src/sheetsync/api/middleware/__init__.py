"""API middleware package."""

from src.sheetsync.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
