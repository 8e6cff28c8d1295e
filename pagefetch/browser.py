import asyncio
import logging
import os
import shutil
import sys
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .errors import BrowserUnavailableError, RenderError
from .settings import FetchConfig, ProxySettings

logger = logging.getLogger(__name__)

# Minimal-sandbox flags for stripped-down Chromium builds (Lambda-style hosts).
SERVERLESS_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-zygote",
    "--single-process",
]

KNOWN_BINARY_PATHS = (
    "/opt/chromium/chromium",
    "/opt/chrome/chrome",
    "/opt/headless-chromium",
    "/tmp/chromium",
)
BINARY_NAMES = ("chromium", "chromium-browser", "headless_shell", "google-chrome")


def playwright_browsers_path() -> Path:
    """Where `playwright install` puts its browser builds."""
    env = os.environ.get("PLAYWRIGHT_BROWSERS_PATH")
    if env == "0":
        import playwright

        return Path(playwright.__file__).parent / "driver" / "package" / ".local-browsers"
    if env:
        return Path(env)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Caches" / "ms-playwright"
    if sys.platform.startswith("win"):
        return Path(os.environ.get("LOCALAPPDATA", Path.home())) / "ms-playwright"
    return Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache")) / "ms-playwright"


def locate_chromium(override: str | None = None) -> str | None:
    """
    Resolve a standalone Chromium executable: explicit override first, then
    well-known packaged locations, then PATH. None when nothing is found.
    """
    if override:
        if Path(override).exists():
            return override
        logger.warning("Chromium override not found at %s", override)
        return None
    for candidate in KNOWN_BINARY_PATHS:
        if Path(candidate).exists():
            return candidate
    for name in BINARY_NAMES:
        found = shutil.which(name)
        if found:
            return found
    return None


class BrowserBackend:
    """One way of getting a Chromium instance. Backends are tried in rank order."""

    name = "base"

    def available(self) -> bool:
        raise NotImplementedError

    async def launch(self, playwright: Playwright, config: FetchConfig, proxy: ProxySettings) -> Browser:
        raise NotImplementedError


class LocalChromiumBackend(BrowserBackend):
    """Chromium installed by `playwright install`."""

    name = "local-chromium"

    def available(self) -> bool:
        root = playwright_browsers_path()
        if not root.is_dir():
            return False
        return any(child.name.startswith("chromium") for child in root.iterdir())

    async def launch(self, playwright, config, proxy):
        return await playwright.chromium.launch(
            headless=config.browser_headless,
            proxy=proxy.playwright(),
            args=["--no-sandbox", "--disable-setuid-sandbox"],
        )


class ServerlessChromiumBackend(BrowserBackend):
    """Minimal packaged Chromium launched from an explicit executable path."""

    name = "serverless-chromium"

    def __init__(self, executable_path: str | None = None):
        self.executable_path = executable_path

    def available(self) -> bool:
        return locate_chromium(self.executable_path) is not None

    async def launch(self, playwright, config, proxy):
        path = locate_chromium(self.executable_path)
        if path is None:
            raise BrowserUnavailableError("Serverless chromium executable not found")
        return await playwright.chromium.launch(
            executable_path=path,
            args=SERVERLESS_ARGS,
            headless=True,
            proxy=proxy.playwright(),
            ignore_default_args=["--disable-extensions"],
        )


def default_backends(config: FetchConfig) -> list[BrowserBackend]:
    return [LocalChromiumBackend(), ServerlessChromiumBackend(config.chromium_path)]


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class BrowserSession:
    """
    Shared, lazily launched browser handle.

    - Backends are probed once at construction; only available ones are kept
    - First acquire() launches the first backend that starts
    - The browser stays warm between requests; per-request contexts are
      opened and closed through context()
    - A launch failure or a crashed browser moves the session to FAILED; the
      next acquire() tears it down and starts from UNINITIALIZED again
    """

    def __init__(
        self,
        config: FetchConfig,
        backends: list[BrowserBackend] | None = None,
        proxy: ProxySettings | None = None,
        playwright_factory=async_playwright,
    ):
        self.config = config
        self.proxy = proxy if proxy is not None else config.proxy_settings
        candidates = backends if backends is not None else default_backends(config)
        self.backends = [b for b in candidates if b.available()]
        self.state = SessionState.UNINITIALIZED
        self.backend_name: str | None = None

        self._playwright_factory = playwright_factory
        self._playwright = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

        if not self.backends:
            logger.warning("No browser backend available; render tier will fail fast")

    @property
    def available(self) -> bool:
        return bool(self.backends)

    async def acquire(self) -> Browser:
        async with self._lock:
            if self.state is SessionState.READY:
                if self._browser is not None and self._browser.is_connected():
                    return self._browser
                logger.warning("Browser (%s) disconnected, relaunching", self.backend_name)
                self.state = SessionState.FAILED

            if self.state is SessionState.FAILED:
                await self._teardown()
                self.state = SessionState.UNINITIALIZED

            return await self._launch()

    async def _launch(self) -> Browser:
        if not self.backends:
            self.state = SessionState.FAILED
            raise BrowserUnavailableError("No browser backend available")

        try:
            if self._playwright is None:
                self._playwright = await self._playwright_factory().start()
        except (PlaywrightError, OSError) as e:
            self.state = SessionState.FAILED
            raise BrowserUnavailableError(f"Playwright driver failed to start: {e}") from e

        errors = []
        for backend in self.backends:
            try:
                browser = await backend.launch(self._playwright, self.config, self.proxy)
            except (PlaywrightError, OSError, BrowserUnavailableError) as e:
                logger.warning("Browser backend %s failed to launch: %s", backend.name, e)
                errors.append(f"{backend.name}: {e}")
                continue
            self._browser = browser
            self.backend_name = backend.name
            self.state = SessionState.READY
            logger.info("Browser launched with %s backend", backend.name)
            return browser

        self.state = SessionState.FAILED
        raise BrowserUnavailableError("; ".join(errors))

    @asynccontextmanager
    async def context(self, **kwargs):
        """Isolated browsing context, closed on every exit path."""
        browser = await self.acquire()
        try:
            ctx: BrowserContext = await browser.new_context(**kwargs)
        except PlaywrightError as e:
            if not browser.is_connected():
                self.state = SessionState.FAILED
            raise RenderError(f"Could not open browser context: {e}") from e

        try:
            yield ctx
        finally:
            try:
                await ctx.close()
            except PlaywrightError as e:
                logger.debug("Ignoring error while closing context: %s", e)

    async def _teardown(self) -> None:
        browser, self._browser = self._browser, None
        pw, self._playwright = self._playwright, None
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.debug("Ignoring error while closing browser: %s", e)
        if pw is not None:
            await pw.stop()

    async def close(self) -> None:
        async with self._lock:
            await self._teardown()
            self.state = SessionState.UNINITIALIZED
            self.backend_name = None
