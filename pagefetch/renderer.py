import logging
import re
from urllib.parse import urlsplit

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .browser import BrowserSession
from .capture import ResponseCapture
from .cookies import load_cookie_file
from .errors import EmptyBodyError, ProtectionPageError, RenderError
from .protection import ProtectionDetector
from .results import FetchOptions, RenderResult
from .settings import FetchConfig, parse_proxy

logger = logging.getLogger(__name__)

HEAVY_RESOURCE_TYPES = {"image", "media", "font"}

# Path shapes with a known content marker worth waiting for after load.
SITE_READY_MARKERS = (
    (re.compile(r"^/search(/|$)"), 'a[href*="/md5/"]'),
)


def site_marker(url: str) -> str | None:
    try:
        path = urlsplit(url).path
    except ValueError:
        return None
    for pattern, selector in SITE_READY_MARKERS:
        if pattern.search(path):
            return selector
    return None


async def _block_heavy(route):
    if route.request.resource_type in HEAVY_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class Renderer:
    """
    Browser-rendering tier on top of a shared BrowserSession.

    Per call:
    - fresh browsing context (own cookie jar and viewport), closed on exit
    - optional cookie injection, heavy-resource blocking and API capture
    - navigation waits for DOMContentLoaded, then a short settle delay
    - optional caller selector wait and site-specific marker wait, both
      best-effort
    - signature-based protection check on the rendered markup

    Any failure surfaces as a FetchError subclass; falling back to raw HTTP
    is the orchestrator's job.
    """

    name = "render"

    def __init__(self, session: BrowserSession, config: FetchConfig, detector: ProtectionDetector | None = None):
        self.session = session
        self.config = config
        # Rendered shells are often tiny before hydration; only signatures count here.
        base = detector or ProtectionDetector(min_length=config.protection_min_length)
        self.detector = base.signatures_only() if config.render_detect_protection else None

    @property
    def available(self) -> bool:
        return self.session.available

    def _context_options(self, options: FetchOptions) -> dict:
        kwargs = {
            "user_agent": self.config.user_agent,
            "locale": self.config.browser_locale,
            "viewport": {"width": self.config.viewport_width, "height": self.config.viewport_height},
            "ignore_https_errors": not self.config.http_verify_tls,
        }
        if options.proxy:
            proxy = parse_proxy(options.proxy).playwright()
            if proxy:
                kwargs["proxy"] = proxy
        return kwargs

    async def render(self, url: str, options: FetchOptions | None = None) -> RenderResult:
        options = options or FetchOptions()
        timeout_ms = options.timeout or self.config.browser_timeout_ms
        block = options.block_resources if options.block_resources is not None else self.config.browser_block_heavy
        cookie_path = options.cookie_file_path or self.config.cookie_file_path

        try:
            async with self.session.context(**self._context_options(options)) as ctx:
                if cookie_path:
                    cookies = load_cookie_file(cookie_path, url)
                    if cookies:
                        await ctx.add_cookies(cookies)

                page = await ctx.new_page()
                try:
                    if block:
                        await page.route("**/*", _block_heavy)

                    capture = None
                    if options.enable_api_capture:
                        capture = ResponseCapture(self.config.capture_max_body_bytes)
                        capture.attach(page)

                    resp = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
                    if resp is not None and resp.status >= 400:
                        raise RenderError(f"Navigation returned HTTP {resp.status}")

                    # Let client-side hydration settle.
                    await page.wait_for_timeout(self.config.render_settle_ms)

                    if options.wait_for_selector:
                        await self._wait_best_effort(page, options.wait_for_selector, self.config.wait_selector_timeout_ms)

                    marker = site_marker(url)
                    if marker:
                        await self._wait_best_effort(page, marker, self.config.site_marker_timeout_ms)

                    html = await page.content()
                    captured = await capture.collect() if capture else ()
                finally:
                    try:
                        await page.close()
                    except PlaywrightError as e:
                        logger.debug("Ignoring error while closing page: %s", e)
        except PlaywrightError as e:
            raise RenderError(str(e).splitlines()[0] if str(e) else type(e).__name__) from e

        if not html or not html.strip():
            raise EmptyBodyError("Rendered page is empty")

        if self.detector is not None:
            reason = self.detector.match(html)
            if reason is not None:
                raise ProtectionPageError(reason)

        return RenderResult(html=html, captured=captured)

    async def _wait_best_effort(self, page, selector: str, timeout_ms: int) -> None:
        try:
            await page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug("Selector %r not found within %dms, continuing", selector, timeout_ms)
