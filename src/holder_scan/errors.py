"""
Error taxonomy for the Holder Scan agent.

Only ``TransientNetworkError`` (and its ``RateLimitError`` subclass) is
retried by the request scheduler; everything else propagates to the caller
on the first failure.
"""

from __future__ import annotations

from typing import Optional


class HolderScanError(Exception):
    """Base class for every error raised by this package."""


class TransientNetworkError(HolderScanError):
    """Timeout, aborted connection or gateway error.  Safe to retry."""


class RateLimitError(TransientNetworkError):
    """The upstream asked us to slow down (HTTP 429 or an RPC rate-limit code)."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(HolderScanError):
    """Non-transient failure reported by the upstream (4xx or a JSON-RPC error)."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code


class MalformedResponseError(HolderScanError):
    """A response was received but did not have the expected shape."""


class NotFoundError(HolderScanError):
    """The requested entity (token account, transaction, ...) does not exist."""


class WalletAnalysisError(HolderScanError):
    """Per-wallet failure; isolated to that wallet's classification."""

    def __init__(self, address: str, message: str) -> None:
        super().__init__(f"{address}: {message}")
        self.address = address


class TokenMetadataError(HolderScanError):
    """Token supply / decimals could not be fetched.  Fatal for the run."""


class ScanCancelledError(HolderScanError):
    """The run was cancelled.  Never converted into a per-wallet error."""
