"""Structured extraction from final markup. Plain DOM querying, no fetching."""

from dataclasses import dataclass, field
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

DEFAULT_ANNAS_BASE = "https://annas-archive.li"


@dataclass
class PageSummary:
    title: str | None
    description: str | None
    images: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    raw_html_length: int = 0


def parse_generic(html: str) -> PageSummary:
    soup = BeautifulSoup(html, "lxml")

    title_tag = soup.find("title")
    title = title_tag.get_text().strip() if title_tag else None

    description = None
    for attrs in ({"name": "description"}, {"property": "og:description"}):
        meta = soup.find("meta", attrs=attrs)
        if meta and meta.get("content"):
            description = meta["content"]
            break

    return PageSummary(
        title=title,
        description=description,
        images=[img["src"] for img in soup.find_all("img") if img.get("src")],
        links=[a["href"] for a in soup.find_all("a") if a.get("href")],
        raw_html_length=len(html),
    )


@dataclass
class AnchorRecord:
    """
    One anchor as found on a search results page.

    Fields:
        href          : Original href attribute.
        resolved_href : Absolute URL resolved against the page origin.
        text          : Anchor text, trimmed.
        attributes    : All raw attributes.
        parent_text   : Trimmed text of the parent element.
        parent_html   : Parent's inner HTML.
        outer_html    : The anchor's own HTML.
    """
    href: str
    resolved_href: str
    text: str
    attributes: dict[str, str]
    parent_text: str
    parent_html: str
    outer_html: str


def _page_origin(soup: BeautifulSoup, base_hint: str | None) -> str:
    base = base_hint
    if not base:
        canonical = soup.find("link", rel="canonical")
        og_url = soup.find("meta", attrs={"property": "og:url"})
        base = (canonical and canonical.get("href")) or (og_url and og_url.get("content")) or None
    if base:
        parts = urlsplit(base)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}"
    return DEFAULT_ANNAS_BASE


def _attr_text(value) -> str:
    # bs4 returns multi-valued attributes (class, rel) as lists
    return " ".join(value) if isinstance(value, list) else value


def parse_annas_search(html: str, base_hint: str | None = None) -> dict[str, list[AnchorRecord]]:
    """
    Every <a href> on the page, de-duplicated by resolved URL (first
    occurrence wins), plus the subset pointing at /md5/ record pages.
    """
    soup = BeautifulSoup(html, "lxml")
    base = _page_origin(soup, base_hint)

    seen = set()
    raw_results = []
    for a in soup.find_all("a", href=True):
        href = a["href"]
        try:
            resolved = urljoin(base + "/", href)
        except ValueError:
            resolved = href
        if resolved in seen:
            continue
        seen.add(resolved)

        parent = a.parent
        raw_results.append(AnchorRecord(
            href=href,
            resolved_href=resolved,
            text=a.get_text().strip(),
            attributes={k: _attr_text(v) for k, v in a.attrs.items()},
            parent_text=parent.get_text().strip() if parent else "",
            parent_html=parent.decode_contents() if parent else "",
            outer_html=str(a),
        ))

    md5_results = [r for r in raw_results if "/md5/" in r.href or "/md5/" in r.resolved_href]
    return {"raw_results": raw_results, "md5_results": md5_results}
