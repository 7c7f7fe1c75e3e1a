"""Typed failures raised at the boundary with GitHub.

Every error the gateway propagates is one of these classes, so callers can
decide between retry, abort and fallback without inspecting HTTP details.
"""
from typing import Mapping, Optional


class GitHubAPIError(Exception):
    """Base class for all classified GitHub failures."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.headers = dict(headers or {})


class NetworkFailure(GitHubAPIError):
    """Connection could not be established or was dropped."""
    pass


class RequestTimeout(GitHubAPIError):
    """Request did not complete within the configured timeout."""
    pass


class RateLimited(GitHubAPIError):
    """Request quota exhausted (403 with no remaining quota, or 429)."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
        retry_after: Optional[float] = None,
        reset: Optional[int] = None
    ):
        super().__init__(message, status, headers)
        self.retry_after = retry_after
        self.reset = reset


class AuthFailure(GitHubAPIError):
    pass


class PermissionDenied(GitHubAPIError):
    pass


class NotFound(GitHubAPIError):
    pass


class ValidationError(GitHubAPIError):
    pass


class ConflictOrUnknown(GitHubAPIError):
    """Conflicts, server errors and anything not classified above."""
    pass


class CacheUnavailable(Exception):
    """Raised inside the cache when the backend is down; never escapes it."""
    pass
