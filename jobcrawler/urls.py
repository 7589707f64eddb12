"""URL normalization.

A posting has no stable identifier other than its URL, so the normalized
URL is the repository's natural key. Normalization:

  - resolve relative hrefs against the site origin
  - lowercase the scheme and hostname
  - keep only scheme + host + path (query string and fragment are dropped;
    listing sites append per-visit tracking tokens to every link)
  - strip a trailing slash from non-root paths
"""

from __future__ import annotations

from urllib.parse import urljoin, urlparse

_ALLOWED_SCHEMES = {"http", "https"}


def normalize_url(href: str | None, origin: str | None = None) -> str | None:
    """Return the identity form of ``href``, or None if it isn't a web URL.

    >>> normalize_url("/jobs/view?id=1&jk=abc123&tk=xyz", "https://example.com")
    'https://example.com/jobs/view'
    """
    if not href:
        return None

    href = href.strip()
    if not href or href.startswith("#"):
        return None

    absolute = urljoin(origin, href) if origin else href
    parsed = urlparse(absolute)

    scheme = (parsed.scheme or "").lower()
    if scheme not in _ALLOWED_SCHEMES or not parsed.hostname:
        return None

    host = parsed.hostname.lower()
    if parsed.port and not _is_default_port(scheme, parsed.port):
        host = f"{host}:{parsed.port}"

    path = parsed.path or "/"
    if path != "/":
        path = path.rstrip("/") or "/"

    return f"{scheme}://{host}{path}"


def site_origin(url: str) -> str:
    """scheme://host of a URL, e.g. for resolving relative links."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def _is_default_port(scheme: str, port: int) -> bool:
    return (scheme, port) in {("http", 80), ("https", 443)}
