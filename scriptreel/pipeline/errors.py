"""
Pipeline failure taxonomy.

Each error carries the HTTP status it maps to. Per-scene image failures are
deliberately absent: they never leave the fan-out as exceptions.
"""

from typing import Optional


class PipelineError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PipelineError):
    """Required request fields missing or invalid. Raised before the quota is touched."""
    status_code = 400


class QuotaExceeded(PipelineError):
    status_code = 429

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(PipelineError):
    """The text-generation provider failed or was unreachable."""


class MalformedResponseError(PipelineError):
    """The text-generation provider answered, but not with a usable script."""


class QuotaStoreError(PipelineError):
    """The quota record could not be updated."""
