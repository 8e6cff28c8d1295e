from urllib.parse import urlsplit

from .errors import InvalidURLError


def require_url(url) -> str:
    """
    Reject missing, blank or non-string URLs up front. This is the only input
    check that raises; odd-looking URLs still go through the tiers so their
    failures end up in the attempt trail.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError("Invalid or missing URL")
    return url.strip()


def describe_error(exc: BaseException) -> str:
    """Trail-friendly message: exception class first so failure kinds stay distinguishable."""
    message = str(exc).strip()
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


def url_host(url: str) -> str | None:
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None
