"""
Failure types shared by the fetch tiers.

Everything derived from FetchError is an environmental failure: it is caught
by the retry loops, recorded in the attempt trail and never reaches the
caller as an exception. InvalidURLError is the only error that propagates.
"""


class FetchError(RuntimeError):
    """Base class for transient network/render failures."""


class HttpFetchError(FetchError):
    """Transport-level failure of a raw HTTP request (timeout, reset, redirects)."""


class HttpStatusError(HttpFetchError):
    def __init__(self, status: int):
        super().__init__(f"HTTP {status}")
        self.status = status


class EmptyBodyError(FetchError):
    """The response came back with no content."""


class ProtectionPageError(FetchError):
    """An anti-bot interstitial was served instead of the page."""

    def __init__(self, signature: str):
        super().__init__(f"Protection page detected ({signature})")
        self.signature = signature


class RenderError(FetchError):
    """Browser navigation or page handling failed."""


class BrowserUnavailableError(RenderError):
    """No rendering engine could be launched."""


class InvalidURLError(ValueError):
    """The caller passed a missing or non-string URL."""
