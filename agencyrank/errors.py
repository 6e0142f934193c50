"""
Error taxonomy for upstream metrics calls.

Every failure the eCFR client can produce is an UpstreamError subclass, so
callers can absorb per-agency failures with a single except clause while
still telling rate limiting apart from everything else.
"""

from typing import Optional


class UpstreamError(Exception):
    """Base class for failures talking to the metrics API."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        slug: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.slug = slug
        self.status = status


class RateLimitedError(UpstreamError):
    """HTTP 429 from the upstream. The only retryable failure."""

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, status=429, **kwargs)
        self.retry_after = retry_after


class TransientError(UpstreamError):
    """Timeout, connection failure, or any non-429 error status."""


class MalformedResponseError(UpstreamError):
    """Response arrived but the payload did not have an accepted shape."""


class TopLevelFailure(Exception):
    """The agency listing could not be obtained, so no ranking is possible."""

    def __init__(self, cause: UpstreamError):
        super().__init__(f"Agency listing failed: {cause}")
        self.cause = cause
