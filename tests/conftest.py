import pytest

from pagefetch.settings import FetchConfig

LONG_HTML = "<html><head><title>Doc</title></head><body>" + "content " * 400 + "</body></html>"


class ScriptedFetcher:
    """
    Stand-in for Renderer / HttpFetcher.

    Each call consumes the next scripted item: exceptions are raised,
    callables are called with the URL, anything else is returned. Once the
    script runs out `default` is used.
    """

    def __init__(self, *script, default=None, config=None):
        self.script = list(script)
        self.default = default
        self.config = config or FetchConfig()
        self.calls = []
        self.options = []
        self.proxies = []
        self.closed = False

    async def _next(self, url):
        self.calls.append(url)
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(url)
        return item

    async def render(self, url, options=None):
        self.options.append(options)
        return await self._next(url)

    async def fetch(self, url, proxy=None):
        self.proxies.append(proxy)
        return await self._next(url)

    async def close(self):
        self.closed = True


@pytest.fixture
def scripted():
    return ScriptedFetcher


@pytest.fixture
def fast_config() -> FetchConfig:
    return FetchConfig(
        http_retry_base_delay_s=0,
        render_retry_base_delay_s=0,
        chain_retry_base_delay_s=0,
    )


@pytest.fixture
def long_html() -> str:
    return LONG_HTML
