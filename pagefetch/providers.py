from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .extract import parse_annas_search, parse_generic

ANNAS_HOSTS = ("annas-archive.org", "annas-archive.li", "annas-archive.se")


class FetchPolicy(str, Enum):
    DIRECT = "direct"              # orchestrator only
    MIRROR_CHAIN = "mirror-chain"  # orchestrator wrapped in the fallback chain


@dataclass(frozen=True)
class Provider:
    """
    Named fetch/extract policy for a family of URLs.

    `extract(html, url)` runs on the final markup; None means the markup is
    handed back untouched.
    """
    name: str
    match: Callable[[str], bool]
    policy: FetchPolicy
    extract: Callable[[str, str], Any] | None = None
    capture_api: bool = False


def _matches_annas(url: str) -> bool:
    return isinstance(url, str) and any(host in url for host in ANNAS_HOSTS)


ANNAS_PROVIDER = Provider(
    name="annas-archive",
    match=_matches_annas,
    policy=FetchPolicy.MIRROR_CHAIN,
    extract=lambda html, url: parse_annas_search(html, url),
    capture_api=True,
)

GENERIC_PROVIDER = Provider(
    name="playwright-generic",
    match=lambda url: True,
    policy=FetchPolicy.DIRECT,
    extract=lambda html, url: parse_generic(html),
)


class ProviderRegistry:
    """First matching provider wins; the default catches everything else."""

    def __init__(self, providers: Sequence[Provider] | None = None, default: Provider = GENERIC_PROVIDER):
        self.providers = list(providers) if providers is not None else [ANNAS_PROVIDER, GENERIC_PROVIDER]
        self.default = default

    def register(self, provider: Provider) -> None:
        """Add a provider ahead of the catch-all default."""
        if self.default in self.providers:
            self.providers.insert(self.providers.index(self.default), provider)
        else:
            self.providers.append(provider)

    def resolve(self, url: str) -> Provider:
        for provider in self.providers:
            if provider.match(url):
                return provider
        return self.default
