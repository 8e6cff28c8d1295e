import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .errors import InvalidURLError
from .results import FetchOptions
from .service import PageFetcher
from .settings import load_fetch_config
from .storage import save_attempts
from .utils import require_url

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main() -> None:
    """Fetch rendered HTML with browser/HTTP fallback and mirror chains."""


@app.command("fetch")
def fetch(
    url: str = typer.Argument(..., help="URL to fetch."),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Navigation timeout in ms."),
    wait_for: Optional[str] = typer.Option(None, "--wait-for", help="CSS selector to wait for (best-effort)."),
    capture: bool = typer.Option(False, "--capture", help="Capture in-page API/XHR responses."),
    cookies: Optional[Path] = typer.Option(None, "--cookies", help="JSON cookie file to inject."),
    proxy: Optional[str] = typer.Option(None, "--proxy", help="Proxy URL, credentials allowed."),
    no_block: bool = typer.Option(False, "--no-block", help="Load images, fonts and media."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML config file."),
    save_trail: Optional[str] = typer.Option(None, "--save-trail", help="Write the attempt trail to results/<NAME>.csv."),
    html: bool = typer.Option(False, "--html", help="Include raw HTML in the output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        url = require_url(url)
    except InvalidURLError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2)

    options = FetchOptions(
        timeout=timeout,
        wait_for_selector=wait_for,
        enable_api_capture=capture,
        cookie_file_path=str(cookies) if cookies else None,
        proxy=proxy,
        block_resources=False if no_block else None,
    )

    async def run():
        async with PageFetcher(load_fetch_config(config_path)) as fetcher:
            return await fetcher.scrape(url, options)

    response = asyncio.run(run())

    if save_trail:
        save_attempts(response.outcome, save_trail)

    typer.echo(json.dumps(response.to_dict(include_html=html), indent=2, ensure_ascii=False, default=str))
    raise typer.Exit(code=0 if response.outcome.success else 1)


if __name__ == "__main__":
    app()
