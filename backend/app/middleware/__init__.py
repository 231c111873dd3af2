"""HTTP middleware for MoodPeek."""

from .logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
