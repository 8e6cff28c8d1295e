"""
Tier orchestration: browser rendering first, raw HTTP second.

- the render tier gets its whole retry budget before HTTP is tried, so a
  transient render problem is never masked by a non-JS response
- the first success at either tier ends the run
- failures are recorded in the attempt trail, never raised
"""

import logging
import time

from .http_fetcher import HttpFetcher
from .policy import RetryPolicy, policy_for_tier, run_tier
from .renderer import Renderer
from .results import AttemptTrail, FetchOptions, FetchOutcome, RenderResult, Tier
from .settings import FetchConfig, ProxySettings, parse_proxy
from .utils import require_url

logger = logging.getLogger(__name__)


def request_proxy(options: FetchOptions) -> ProxySettings | None:
    """Per-call proxy override, or None to keep the configured one."""
    if not options.proxy:
        return None
    proxy = parse_proxy(options.proxy)
    return proxy if proxy.server else None


class FetchOrchestrator:
    def __init__(
        self,
        renderer: Renderer | None,
        http: HttpFetcher,
        config: FetchConfig,
        render_policy: RetryPolicy | None = None,
        http_policy: RetryPolicy | None = None,
    ):
        self.renderer = renderer
        self.http = http
        self.config = config
        self.render_policy = render_policy or policy_for_tier(Tier.RENDER, config)
        self.http_policy = http_policy or policy_for_tier(Tier.HTTP, config)

    @property
    def renders(self) -> bool:
        return self.renderer is not None and not self.config.http_only

    async def attempt(self, url: str, options: FetchOptions, trail: AttemptTrail) -> RenderResult | str | None:
        """Run both tiers against `url`, appending to `trail`. None when both are exhausted."""
        if self.renders:
            result = await run_tier(
                self.render_policy, Tier.RENDER, url, trail,
                lambda u: self.renderer.render(u, options),
            )
            if result is not None:
                return result
            logger.info("Render tier exhausted for %s, falling back to raw HTTP", url)

        proxy = request_proxy(options)
        return await run_tier(
            self.http_policy, Tier.HTTP, url, trail,
            lambda u: self.http.fetch(u, proxy),
        )

    async def orchestrate(self, url: str, options: FetchOptions | None = None) -> FetchOutcome:
        url = require_url(url)
        options = options or FetchOptions()
        started = time.perf_counter()
        trail = AttemptTrail()

        result = await self.attempt(url, options, trail)
        outcome = FetchOutcome.finish(url, trail, started, result=result, final_url=url)

        if outcome.success:
            logger.info("Fetched %s via %s in %.2fs", url, outcome.attempts[-1].tier.value, outcome.elapsed_s)
        else:
            logger.warning("All tiers failed for %s after %d attempts: %s", url, len(trail), outcome.error)
        return outcome
