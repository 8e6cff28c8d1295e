"""
Fallback chain for site families mirrored across several domains.

States are walked strictly in order, each delegating to the orchestrator,
and the walk stops at the first success:

    original -> protocol-swapped -> trailing-slash-variant
             -> mirror-origin (one per configured origin)
             -> http-fallback (raw HTTP, renderer bypassed)

Ordinary fetch failure is reported in the outcome (success=False, error),
never raised. Only a missing URL raises.
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from urllib.parse import SplitResult, urlsplit, urlunsplit

from .http_fetcher import fetch_html
from .orchestrator import FetchOrchestrator, request_proxy
from .policy import CHAIN, RetryPolicy, policy_for_tier
from .results import AttemptTrail, FetchOptions, FetchOutcome, RenderResult, Tier
from .utils import describe_error, require_url

logger = logging.getLogger(__name__)


class ChainState(str, Enum):
    ORIGINAL = "original"
    PROTOCOL_SWAP = "protocol-swapped"
    TRAILING_SLASH = "trailing-slash-variant"
    MIRROR_ORIGIN = "mirror-origin"
    RAW_HTTP_LAST_RESORT = "http-fallback"


def _split(url: str) -> SplitResult:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"not an absolute URL: {url!r}")
    return parts


def protocol_swapped(url: str) -> str | None:
    """Same host/path/query with http <-> https swapped; None if not applicable."""
    try:
        parts = _split(url)
    except ValueError:
        return None
    swap = {"https": "http", "http": "https"}.get(parts.scheme.lower())
    if swap is None:
        return None
    return urlunsplit(parts._replace(scheme=swap))


def trailing_slash_variant(url: str) -> str | None:
    """Path with a trailing slash added if absent, removed if present."""
    try:
        parts = _split(url)
    except ValueError:
        return None
    path = parts.path[:-1] if parts.path.endswith("/") else parts.path + "/"
    return urlunsplit(parts._replace(path=path))


def rebase_on_origin(url: str, origin: str) -> str:
    """
    Move path + query + fragment of `url` onto `origin`. An unparsable `url`
    is appended to the origin as-is.
    """
    base = urlsplit(origin)
    try:
        parts = _split(url)
    except ValueError:
        prefix = origin.rstrip("/")
        return prefix + url if url.startswith("/") else f"{prefix}/{url}"
    return urlunsplit((base.scheme, base.netloc, parts.path, parts.query, parts.fragment))


@dataclass(frozen=True)
class ChainStep:
    state: ChainState
    url: str
    origin: str | None = None

    @property
    def label(self) -> str:
        if self.origin:
            return f"{self.state.value}:{self.origin}"
        return self.state.value


class FallbackChainWalker:
    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        mirror_origins: Sequence[str] | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.orchestrator = orchestrator
        origins = mirror_origins if mirror_origins is not None else orchestrator.config.mirror_origins
        self.mirror_origins = tuple(origins)
        self.policy = policy or policy_for_tier(CHAIN, orchestrator.config)

    def plan(self, url: str) -> list[ChainStep]:
        """Ordered steps before the raw-HTTP last resort. Variants that cannot be built are skipped."""
        steps = [ChainStep(ChainState.ORIGINAL, url)]

        swapped = protocol_swapped(url)
        if swapped:
            steps.append(ChainStep(ChainState.PROTOCOL_SWAP, swapped))

        slashed = trailing_slash_variant(url)
        if slashed:
            steps.append(ChainStep(ChainState.TRAILING_SLASH, slashed))

        for origin in self.mirror_origins:
            steps.append(ChainStep(ChainState.MIRROR_ORIGIN, rebase_on_origin(url, origin), origin))
        return steps

    async def attempt(self, step: ChainStep, options: FetchOptions, trail: AttemptTrail) -> RenderResult | str | None:
        """Run one state. Mirrors get a single pass each; the other states use the chain budget."""
        trail.state = step.label
        tries = 1 if step.state is ChainState.MIRROR_ORIGIN else self.policy.max_attempts

        for i in range(1, tries + 1):
            try:
                result = await self.orchestrator.attempt(step.url, options, trail)
            except Exception as e:
                # Keep walking even if the tiers blow up outright.
                logger.exception("Orchestrator crashed on %s (%s)", step.url, step.label)
                trail.record(step.url, Tier.RENDER, error=describe_error(e))
                result = None

            if result is not None:
                return result

            if i < tries and step.state is ChainState.ORIGINAL:
                delay = self.policy.delay(i)
                logger.debug("Backing off %.2fs before retrying %s", delay, step.url)
                await asyncio.sleep(delay)
        return None

    async def _last_resort(self, url: str, options: FetchOptions, trail: AttemptTrail) -> str | None:
        trail.state = ChainState.RAW_HTTP_LAST_RESORT.value
        try:
            return await fetch_html(
                self.orchestrator.http, url, trail, self.orchestrator.http_policy, request_proxy(options),
            )
        except Exception as e:
            logger.exception("Raw HTTP fallback crashed on %s", url)
            trail.record(url, Tier.HTTP, error=describe_error(e))
            return None

    async def walk(self, url: str, options: FetchOptions | None = None) -> FetchOutcome:
        url = require_url(url)
        options = options or FetchOptions()
        started = time.perf_counter()
        trail = AttemptTrail()

        for step in self.plan(url):
            logger.info("Fallback chain: trying %s -> %s", step.label, step.url)
            result = await self.attempt(step, options, trail)
            if result is not None:
                return FetchOutcome.finish(
                    url, trail, started, result=result, final_url=step.url, state=step.label,
                )

        logger.info("Fallback chain exhausted for %s, trying raw HTTP last resort", url)
        html = await self._last_resort(url, options, trail)
        outcome = FetchOutcome.finish(
            url, trail, started, result=html, final_url=url, state=ChainState.RAW_HTTP_LAST_RESORT.value,
        )
        if not outcome.success:
            logger.warning("Fallback chain failed for %s after %d attempts: %s", url, len(trail), outcome.error)
        return outcome
