import asyncio
import logging

import aiohttp

from .errors import EmptyBodyError, HttpFetchError, HttpStatusError, ProtectionPageError
from .policy import RetryPolicy, policy_for_tier, run_tier
from .protection import ProtectionDetector
from .results import AttemptTrail, Tier
from .settings import FetchConfig, ProxySettings
from .utils import require_url

logger = logging.getLogger(__name__)


DEFAULT_HTTP_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


class HttpFetcher:
    """
    Raw HTTP tier built on aiohttp.

    - One network round trip per fetch() call; retries are applied outside
    - Shared keep-alive connection pool, capped socket count
    - TLS validation off by default to tolerate misconfigured mirrors
    - Bounded redirect count
    - Status >= 400, empty body and protection pages are failures
    """
    name = "http"

    def __init__(
        self,
        config: FetchConfig,
        proxy: ProxySettings | None = None,
        session: aiohttp.ClientSession | None = None,
        detector: ProtectionDetector | None = None,
    ):
        self.config = config
        self.proxy = proxy if proxy is not None else config.proxy_settings
        self.detector = detector or ProtectionDetector(min_length=config.protection_min_length)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        # Created lazily so the pool binds to the running event loop.
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.config.http_max_sockets,
                ssl=self.config.http_verify_tls,
            )
            timeout = aiohttp.ClientTimeout(
                total=self.config.http_total_timeout_s,
                connect=self.config.http_connect_timeout_s,
                sock_read=self.config.http_sock_read_timeout_s,
            )
            self._session = aiohttp.ClientSession(connector=connector, timeout=timeout)
            self._owns_session = True
        return self._session

    async def fetch(self, url: str, proxy: ProxySettings | None = None) -> str:
        """
        Fetch a URL once, through `proxy` when given, else the configured proxy.

        Returns:
            Non-empty body text.
        Raises:
            HttpFetchError / HttpStatusError on transport or status failure,
            EmptyBodyError, ProtectionPageError.
        """
        headers = {**DEFAULT_HTTP_HEADERS, "User-Agent": self.config.user_agent}
        session = self._get_session()

        try:
            async with session.get(
                url,
                headers=headers,
                proxy=(proxy if proxy is not None else self.proxy).url,
                allow_redirects=True,
                max_redirects=self.config.http_max_redirects,
            ) as resp:
                status = resp.status
                body = await resp.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise HttpFetchError(str(e) or type(e).__name__) from e

        if status >= 400:
            raise HttpStatusError(status)

        if not body or not body.strip():
            raise EmptyBodyError("Empty response body")

        reason = self.detector.match(body)
        if reason is not None:
            raise ProtectionPageError(reason)

        return body

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()


async def fetch_html(
    fetcher: HttpFetcher,
    url: str,
    trail: AttemptTrail | None = None,
    policy: RetryPolicy | None = None,
    proxy: ProxySettings | None = None,
) -> str | None:
    """
    Standalone raw-HTTP fallback: the HTTP tier under its own retry budget.

    Returns the body, or None when every try failed (see the trail for why).
    """
    url = require_url(url)
    trail = trail if trail is not None else AttemptTrail()
    policy = policy or policy_for_tier(Tier.HTTP, fetcher.config)
    return await run_tier(policy, Tier.HTTP, url, trail, lambda u: fetcher.fetch(u, proxy))
