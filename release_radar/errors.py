"""
Exception hierarchy for version resolution, mirroring and state persistence.

Resolution and mirror errors are per-tool/per-item and are captured as data by
the checker and the asset mirror. StoreError and ConfigError are fatal.
"""

from __future__ import annotations


class ReleaseRadarError(Exception):
    """Base class for all release-radar errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(ReleaseRadarError):
    """Raised when tool or download configuration is invalid."""


class StoreError(ReleaseRadarError):
    """Raised when the version store cannot be read, parsed or written."""


class ResolutionError(ReleaseRadarError):
    """
    Raised when a tool's current version cannot be resolved.

    Attributes:
        message: Human-readable error message
        retryable: Whether a later run is likely to succeed
    """

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class FetchError(ResolutionError):
    """Network failure or timeout while talking to an upstream source."""

    def __init__(self, message: str):
        super().__init__(message, retryable=True)


class ApiError(ResolutionError):
    """Upstream answered with a non-success HTTP status."""

    def __init__(self, message: str, status: int = 0, retryable: bool = False):
        self.status = status
        super().__init__(message, retryable=retryable)


class RateLimitError(ApiError):
    """Upstream refused the request because of rate limiting."""

    def __init__(self, message: str, status: int = 403):
        super().__init__(message, status=status, retryable=True)


class NotFoundError(ResolutionError):
    """Well-formed response that holds no matching entry."""


class ParseError(ResolutionError):
    """Response body could not be decoded into the expected shape."""


class MirrorError(ReleaseRadarError):
    """Base class for asset mirroring failures."""


class MirrorDownloadError(MirrorError):
    """Source negotiation or transfer failure for a single mirror item."""


class MirrorPublishError(MirrorError):
    """The external release could not be created or inspected."""


class CheckInProgressError(ReleaseRadarError):
    """Raised when check_all is entered while another run is active."""
