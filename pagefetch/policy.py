"""
Retry policy: how many times a tier is tried and how long to wait in between.

The logic is:
- a small fixed attempt budget per tier
- linear backoff (base delay x attempt index), no jitter
- nothing else, so worst-case latency stays predictable under the
  caller's overall deadline
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .errors import FetchError
from .results import AttemptTrail, PayloadShape, RenderResult, Tier
from .settings import FetchConfig
from .utils import describe_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHAIN = "chain"


@dataclass(frozen=True)
class RetryDecision:
    proceed: bool
    delay_s: float


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    base_delay_s: float

    def delay(self, attempt: int) -> float:
        return self.base_delay_s * attempt

    def decide(self, attempt: int) -> RetryDecision:
        """`attempt` is the 1-based index of the try that just failed."""
        if attempt < 1:
            raise ValueError(f"attempt index must be >= 1, got {attempt}")
        return RetryDecision(proceed=attempt < self.max_attempts, delay_s=self.delay(attempt))


def policy_for_tier(tier: Tier | str, config: FetchConfig | None = None) -> RetryPolicy:
    cfg = config or FetchConfig()
    tier = tier.value if isinstance(tier, Tier) else tier

    if tier == Tier.HTTP.value:
        return RetryPolicy(cfg.http_max_attempts, cfg.http_retry_base_delay_s)
    if tier == Tier.RENDER.value:
        return RetryPolicy(cfg.render_max_attempts, cfg.render_retry_base_delay_s)
    if tier == CHAIN:
        return RetryPolicy(cfg.chain_max_attempts, cfg.chain_retry_base_delay_s)
    raise ValueError(f"unknown tier: {tier!r}")


def payload_shape(result) -> PayloadShape:
    if isinstance(result, RenderResult) and result.captured:
        return PayloadShape.CAPTURE
    return PayloadShape.TEXT


async def run_tier(
    policy: RetryPolicy,
    tier: Tier,
    url: str,
    trail: AttemptTrail,
    call: Callable[[str], Awaitable[T]],
) -> T | None:
    """
    Call `call(url)` until it succeeds or the policy budget is spent.

    Every try is recorded in `trail`. Returns the first successful result, or
    None once the budget is exhausted. Only FetchError is treated as a
    retryable failure.
    """
    attempt = 0
    while True:
        attempt += 1
        t0 = time.perf_counter()
        try:
            result = await call(url)
        except FetchError as e:
            trail.record(url, tier, error=describe_error(e), elapsed_s=time.perf_counter() - t0)
            logger.warning("%s attempt %d/%d failed for %s: %s", tier.value, attempt, policy.max_attempts, url, e)
        else:
            trail.record(url, tier, payload=payload_shape(result), elapsed_s=time.perf_counter() - t0)
            return result

        decision = policy.decide(attempt)
        if not decision.proceed:
            return None
        logger.debug("Backing off %.2fs before %s attempt %d", decision.delay_s, tier.value, attempt + 1)
        await asyncio.sleep(decision.delay_s)
