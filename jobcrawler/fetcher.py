"""Page fetcher for listing search pages.

One GET per call with a fixed browser-like header set, a bounded timeout
and bounded redirect following. Failures are not retried: the orchestrator
decides what a failed page means for the rest of the crawl.
"""

from __future__ import annotations

import logging
from enum import Enum

import requests

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}


class FailureKind(Enum):
    """Why a fetch failed."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"


class FetchError(Exception):
    """A page could not be fetched."""

    def __init__(self, url: str, kind: FailureKind, message: str = "", status_code: int | None = None):
        self.url = url
        self.kind = kind
        self.status_code = status_code
        detail = message or kind.value
        super().__init__(f"{kind.value} fetching {url}: {detail}")


class PageFetcher:
    """Fetches raw markup for a URL."""

    def __init__(
        self,
        timeout: float = 10.0,
        max_redirects: int = 5,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent, **DEFAULT_HEADERS})
        self.session.max_redirects = max_redirects

    def fetch(self, url: str) -> str:
        """GET ``url`` and return the response body.

        Raises:
            FetchError: on timeout, connection problems, too many redirects,
                or a non-2xx final status.
        """
        logger.debug("Fetching: %s", url)
        try:
            resp = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        except requests.Timeout as exc:
            raise FetchError(url, FailureKind.TIMEOUT, str(exc)) from exc
        except requests.RequestException as exc:
            # TooManyRedirects, ConnectionError, invalid URLs, ...
            raise FetchError(url, FailureKind.NETWORK, str(exc)) from exc

        if not 200 <= resp.status_code < 300:
            raise FetchError(
                url,
                FailureKind.HTTP_STATUS,
                f"{resp.status_code} {resp.reason or ''}".strip(),
                status_code=resp.status_code,
            )

        # Without a charset requests assumes ISO-8859-1 for text/html
        content_type = resp.headers.get("Content-Type", "").lower()
        if "charset" not in content_type and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return resp.text

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> PageFetcher:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
