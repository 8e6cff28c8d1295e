import logging
from dataclasses import asdict, dataclass, is_dataclass
from typing import Any

from .browser import BrowserSession
from .fallback import FallbackChainWalker
from .http_fetcher import HttpFetcher
from .orchestrator import FetchOrchestrator
from .providers import FetchPolicy, Provider, ProviderRegistry
from .renderer import Renderer
from .results import FetchOptions, FetchOutcome, FetchRequest
from .settings import FetchConfig, load_fetch_config
from .utils import require_url

logger = logging.getLogger(__name__)


def _plain(value):
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass
class ScrapeResponse:
    provider: str
    outcome: FetchOutcome
    data: Any = None

    def to_dict(self, include_html: bool = False) -> dict:
        return {
            "provider": self.provider,
            "data": _plain(self.data),
            "fetch": self.outcome.to_dict(include_html=include_html),
        }


class PageFetcher:
    """
    Inbound entry point: pick a provider for the URL, run its fetch policy,
    optionally run its extractor.

    Owns the shared resources (browser session, HTTP connection pool) for its
    lifetime; use it as an async context manager so they are released:

        async with PageFetcher() as fetcher:
            outcome = await fetcher.fetch_page("https://example.com")
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        *,
        renderer: Renderer | None = None,
        http: HttpFetcher | None = None,
        registry: ProviderRegistry | None = None,
    ):
        self.config = config or load_fetch_config()
        self.http = http or HttpFetcher(self.config)
        self.session: BrowserSession | None = None

        if renderer is None and not self.config.http_only:
            self.session = BrowserSession(self.config)
            renderer = Renderer(self.session, self.config)
        elif self.config.http_only:
            logger.info("HTTP-only mode, rendering disabled")
        self.renderer = renderer

        self.orchestrator = FetchOrchestrator(self.renderer, self.http, self.config)
        self.walker = FallbackChainWalker(self.orchestrator)
        self.registry = registry or ProviderRegistry()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self) -> None:
        await self.http.close()
        if self.session is not None:
            await self.session.close()

    async def _run(self, provider: Provider, request: FetchRequest) -> FetchOutcome:
        url, options = request.url, request.options
        if provider.capture_api and not options.enable_api_capture:
            options = options.model_copy(update={"enable_api_capture": True})

        if provider.policy is FetchPolicy.MIRROR_CHAIN:
            return await self.walker.walk(url, options)
        return await self.orchestrator.orchestrate(url, options)

    @staticmethod
    def _request(url, options: FetchOptions | dict | None) -> FetchRequest:
        url = require_url(url)
        if isinstance(options, dict):
            options = FetchOptions.model_validate(options)
        return FetchRequest(url=url, options=options or FetchOptions())

    async def fetch_page(self, url: str, options: FetchOptions | dict | None = None) -> FetchOutcome:
        """Fetch markup for `url`. Fetch failure comes back as success=False, never raised."""
        request = self._request(url, options)
        provider = self.registry.resolve(request.url)
        logger.info("Fetching %s with provider %s", request.url, provider.name)
        return await self._run(provider, request)

    async def scrape(self, url: str, options: FetchOptions | dict | None = None) -> ScrapeResponse:
        request = self._request(url, options)
        provider = self.registry.resolve(request.url)
        outcome = await self._run(provider, request)

        data = None
        if outcome.success and provider.extract is not None:
            data = provider.extract(outcome.html, outcome.final_url or request.url)
        return ScrapeResponse(provider=provider.name, outcome=outcome, data=data)
