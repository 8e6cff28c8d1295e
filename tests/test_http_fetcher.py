import aiohttp
import pytest

from pagefetch.errors import EmptyBodyError, HttpFetchError, HttpStatusError, ProtectionPageError, RenderError
from pagefetch.http_fetcher import HttpFetcher, fetch_html
from pagefetch.orchestrator import FetchOrchestrator
from pagefetch.policy import RetryPolicy
from pagefetch.results import AttemptTrail, FetchOptions, Tier
from pagefetch.settings import FetchConfig, parse_proxy


class FakeResponse:
    def __init__(self, status: int = 200, body: str = ""):
        self.status = status
        self.body = body

    async def text(self, errors="strict"):
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    closed = False

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self):
        self.closed = True


def make_fetcher(*responses, **config) -> tuple[HttpFetcher, FakeSession]:
    session = FakeSession(*responses)
    return HttpFetcher(FetchConfig(**config), session=session), session


@pytest.mark.asyncio
async def test_returns_body_on_success(long_html):
    fetcher, session = make_fetcher(FakeResponse(200, long_html))

    assert await fetcher.fetch("https://example.com") == long_html

    url, kwargs = session.calls[0]
    assert url == "https://example.com"
    assert kwargs["headers"]["User-Agent"].startswith("Mozilla/5.0")
    assert kwargs["headers"]["Upgrade-Insecure-Requests"] == "1"
    assert kwargs["max_redirects"] == 5
    assert kwargs["proxy"] is None


@pytest.mark.asyncio
async def test_status_400_and_above_fails(long_html):
    fetcher, _ = make_fetcher(FakeResponse(503, long_html))
    with pytest.raises(HttpStatusError) as exc_info:
        await fetcher.fetch("https://example.com")
    assert exc_info.value.status == 503


@pytest.mark.asyncio
async def test_blank_body_fails():
    fetcher, _ = make_fetcher(FakeResponse(200, "   \n"))
    with pytest.raises(EmptyBodyError):
        await fetcher.fetch("https://example.com")


@pytest.mark.asyncio
async def test_protection_page_fails():
    body = "<title>DDoS-Guard</title>" + "x" * 5000
    fetcher, _ = make_fetcher(FakeResponse(200, body))
    with pytest.raises(ProtectionPageError) as exc_info:
        await fetcher.fetch("https://example.com")
    assert exc_info.value.signature == "ddos-guard"


@pytest.mark.asyncio
async def test_short_body_hits_length_floor():
    fetcher, _ = make_fetcher(FakeResponse(200, "<html><body>tiny</body></html>"))
    with pytest.raises(ProtectionPageError):
        await fetcher.fetch("https://example.com")


@pytest.mark.asyncio
async def test_transport_error_is_wrapped():
    fetcher, _ = make_fetcher(aiohttp.ClientConnectionError("connection reset"))
    with pytest.raises(HttpFetchError, match="connection reset"):
        await fetcher.fetch("https://example.com")


@pytest.mark.asyncio
async def test_proxy_url_passed_through(long_html):
    fetcher, session = make_fetcher(FakeResponse(200, long_html), proxy="http://u:p@proxy.local:3128")
    await fetcher.fetch("https://example.com")
    assert session.calls[0][1]["proxy"] == "http://u:p@proxy.local:3128"


@pytest.mark.asyncio
async def test_injected_session_is_not_closed():
    fetcher, session = make_fetcher()
    await fetcher.close()
    assert not session.closed


@pytest.mark.asyncio
async def test_fetch_html_retries_until_success(long_html):
    fetcher, _ = make_fetcher(
        aiohttp.ClientConnectionError("reset"),
        FakeResponse(500, long_html),
        FakeResponse(200, long_html),
    )
    trail = AttemptTrail()

    body = await fetch_html(fetcher, "https://example.com", trail, RetryPolicy(3, 0))

    assert body == long_html
    assert [a.success for a in trail] == [False, False, True]
    assert all(a.tier is Tier.HTTP for a in trail)
    assert trail.snapshot()[1].error == "HttpStatusError: HTTP 500"


@pytest.mark.asyncio
async def test_fetch_html_gives_up_after_budget(long_html):
    fetcher, session = make_fetcher(*[FakeResponse(404, long_html) for _ in range(5)])
    trail = AttemptTrail()

    assert await fetch_html(fetcher, "https://example.com", trail, RetryPolicy(3, 0)) is None
    assert len(trail) == 3
    assert len(session.calls) == 3


@pytest.mark.asyncio
async def test_per_call_proxy_overrides_configured_one(long_html):
    fetcher, session = make_fetcher(FakeResponse(200, long_html), proxy="http://cfg.local:3128")
    await fetcher.fetch("https://example.com", parse_proxy("http://u:p@call.local:8080"))
    assert session.calls[0][1]["proxy"] == "http://u:p@call.local:8080"


@pytest.mark.asyncio
async def test_request_proxy_reaches_http_tier_after_render_fails(scripted, fast_config, long_html):
    session = FakeSession(FakeResponse(200, long_html))
    http = HttpFetcher(fast_config, session=session)
    renderer = scripted(default=RenderError("navigation timeout"))
    options = FetchOptions(proxy="http://u:p@call.local:8080")

    outcome = await FetchOrchestrator(renderer, http, fast_config).orchestrate("https://example.com", options)

    assert outcome.success
    assert outcome.attempts[-1].tier is Tier.HTTP
    assert session.calls[0][1]["proxy"] == "http://u:p@call.local:8080"
