"""Capture of in-page API/XHR responses during rendering."""

import asyncio
import json
import logging
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError

from .results import Captured, CapturedJson, CapturedText

logger = logging.getLogger(__name__)

API_PATH_MARKERS = ("/api/", "/ajax/", "/_next/data/", "/rest/")
DATA_EXTENSIONS = (".json", ".ndjson", ".jsonld")
QUERY_PROTOCOL_MARKERS = ("graphql",)


def looks_like_api(url: str) -> bool:
    """Heuristic for data endpoints: API path marker, data extension, or GraphQL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    path = parts.path.lower()
    query = parts.query.lower()

    if any(marker in path for marker in API_PATH_MARKERS):
        return True
    if path.endswith(DATA_EXTENSIONS):
        return True
    return any(marker in path or marker in query for marker in QUERY_PROTOCOL_MARKERS)


def to_captured(url: str, body: str) -> Captured:
    """Structured when the body parses as JSON, raw text otherwise."""
    try:
        return CapturedJson(url=url, value=json.loads(body))
    except ValueError:
        return CapturedText(url=url, text=body)


class ResponseCapture:
    """
    Records bodies of API-looking responses for one page.

    Usage:
        capture = ResponseCapture()
        capture.attach(page)
        # ... navigation ...
        captured = await capture.collect()
    """

    def __init__(self, max_body_bytes: int = 1_000_000):
        self.max_body_bytes = max_body_bytes
        self._items: list[tuple[int, Captured]] = []
        self._pending: set[asyncio.Task] = set()
        self._seq = 0

    def attach(self, page) -> None:
        page.on("response", self._on_response)

    def _on_response(self, response) -> None:
        if not looks_like_api(response.url):
            return
        # Keep arrival order even though bodies resolve out of order.
        self._seq += 1
        task = asyncio.ensure_future(self._read(self._seq, response))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _read(self, seq: int, response) -> None:
        try:
            body = await response.text()
        except (PlaywrightError, UnicodeDecodeError) as e:
            # Redirects and evicted resources have no body.
            logger.debug("Skipping capture of %s: %s", response.url, e)
            return
        if len(body) > self.max_body_bytes:
            logger.debug("Skipping capture of %s: body over %d bytes", response.url, self.max_body_bytes)
            return
        self._items.append((seq, to_captured(response.url, body)))

    async def collect(self) -> tuple[Captured, ...]:
        """Wait for in-flight body reads, then return captures in arrival order."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        return tuple(item for _, item in sorted(self._items, key=lambda pair: pair[0]))
