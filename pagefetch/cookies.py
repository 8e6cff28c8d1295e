"""
Session cookie files for the browser tier.

A cookie file is a JSON array of objects with at least `name` and `value`
(browser-extension export format). Entries are normalized into the shape
Playwright's BrowserContext.add_cookies() expects:

- missing domain   -> target URL's host, leading dot stripped
- missing path     -> "/"
- missing sameSite -> "Lax"
- missing secure   -> True for https targets
"""

import json
import logging
from pathlib import Path
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

SAME_SITE_VALUES = {
    "lax": "Lax",
    "strict": "Strict",
    "none": "None",
    "no_restriction": "None",
    "unspecified": "Lax",
}


def normalize_cookie(raw: dict, url: str) -> dict | None:
    """Return a Playwright cookie dict, or None when name/value are missing."""
    name, value = raw.get("name"), raw.get("value")
    if not name or value is None:
        return None

    try:
        target = urlsplit(url)
        host, scheme = target.hostname or "", target.scheme
    except ValueError:
        host, scheme = "", ""
    domain = raw.get("domain") or host.lstrip(".")
    same_site = SAME_SITE_VALUES.get(str(raw.get("sameSite") or "lax").lower(), "Lax")
    secure = raw.get("secure")
    if secure is None:
        secure = scheme == "https"
    if same_site == "None":
        # Chromium rejects SameSite=None without Secure
        secure = True

    cookie = {
        "name": str(name),
        "value": str(value),
        "domain": domain,
        "path": raw.get("path") or "/",
        "httpOnly": bool(raw.get("httpOnly", False)),
        "secure": bool(secure),
        "sameSite": same_site,
    }

    expires = raw.get("expires", raw.get("expirationDate"))
    if isinstance(expires, (int, float)) and expires > 0:
        cookie["expires"] = float(expires)

    return cookie


def load_cookie_file(path: str | Path, url: str) -> list[dict]:
    """
    Read and normalize a cookie file for `url`.

    A missing or malformed file yields no cookies (logged), so a bad cookie
    file never fails the fetch on its own.
    """
    p = Path(path).expanduser()
    if not p.exists():
        logger.warning("Cookie file not found: %s", p)
        return []

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        # ValueError covers both bad JSON and bytes that are not UTF-8
        logger.warning("Could not read cookie file %s: %s", p, e)
        return []

    if not isinstance(data, list):
        logger.warning("Cookie file %s must hold a JSON array, got %s", p, type(data).__name__)
        return []

    cookies = []
    for raw in data:
        cookie = normalize_cookie(raw, url) if isinstance(raw, dict) else None
        if cookie is None:
            logger.warning("Skipping cookie entry without name/value in %s", p)
            continue
        cookies.append(cookie)
    return cookies
