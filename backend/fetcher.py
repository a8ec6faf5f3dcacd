"""HTTP retrieval of monitored pages."""

import logging
import time

import httpx

from errors import FetchError, ValidationError
from models import RawPage
from validator import validate_url

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; WebMonitor/1.0; +https://github.com/web-monitor)"
ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
FETCH_TIMEOUT = 15.0
MAX_REDIRECTS = 3
HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


def _check_request_target(request: httpx.Request):
    # Runs for the first request and for every redirect hop.
    validate_url(str(request.url))


def build_http_client(transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Create the shared httpx client used for every page fetch."""
    return httpx.Client(
        headers={
            "User-Agent": USER_AGENT,
            "Accept": ACCEPT,
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        },
        timeout=FETCH_TIMEOUT,
        follow_redirects=True,
        max_redirects=MAX_REDIRECTS,
        event_hooks={"request": [_check_request_target]},
        transport=transport,
    )


class PageFetcher:
    """Fetches one HTML page per call. Never retries; that is the caller's decision."""

    def __init__(self, client: httpx.Client | None = None):
        self.client = client or build_http_client()

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def fetch(self, url: str) -> RawPage:
        try:
            validate_url(url)
        except ValidationError as e:
            raise FetchError(str(e)) from e

        # The request hook can only reject redirect hops from here on
        try:
            resp = self.client.get(
                url,
                # cache buster, stripped from the returned URL
                params={"_cb": int(time.time() * 1000)},
            )
            resp.raise_for_status()
        except ValidationError as e:
            raise FetchError(f"Redirected to a disallowed URL: {e}") from e
        except httpx.TooManyRedirects as e:
            raise FetchError(f"Too many redirects (max {MAX_REDIRECTS})") from e
        except httpx.TimeoutException as e:
            raise FetchError(f"Request timed out after {FETCH_TIMEOUT:.0f}s") from e
        except httpx.HTTPStatusError as e:
            raise FetchError(f"HTTP {e.response.status_code} fetching {url}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request failed: {e}") from e
        except httpx.InvalidURL as e:
            raise FetchError(f"Invalid URL: {e}") from e

        content_type = resp.headers.get("content-type", "").lower()
        if not any(t in content_type for t in HTML_CONTENT_TYPES):
            raise FetchError("Cannot monitor this file type — only HTML pages are supported")

        logger.debug(f"Fetched {url}: {resp.status_code}, {len(resp.content)} bytes")
        return RawPage(
            url=str(resp.url.copy_remove_param("_cb")),
            html=resp.text,
            content_type=content_type,
            status_code=resp.status_code,
        )
