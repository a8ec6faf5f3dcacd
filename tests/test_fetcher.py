"""Tests for the page fetcher, run against httpx.MockTransport."""

import httpx
import pytest

from errors import FetchError
from fetcher import ACCEPT, MAX_REDIRECTS, USER_AGENT, PageFetcher, build_http_client

HTML = "<html><body><p>Hello</p></body></html>"


def make_fetcher(handler) -> PageFetcher:
    return PageFetcher(build_http_client(transport=httpx.MockTransport(handler)))


class TestFetchRequest:
    def test_sends_headers_and_cache_buster(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=HTML, headers={"content-type": "text/html; charset=utf-8"})

        page = make_fetcher(handler).fetch("https://example.com/page?lang=en")

        request = seen[0]
        assert request.headers["user-agent"] == USER_AGENT
        assert "text/html" in request.headers["accept"]
        assert request.headers["cache-control"] == "no-cache"
        assert request.headers["pragma"] == "no-cache"
        assert request.url.params["lang"] == "en"
        assert request.url.params["_cb"].isdigit()
        assert page.html == HTML
        assert page.status_code == 200
        assert "_cb" not in page.url

    def test_xhtml_accepted(self):
        def handler(request):
            return httpx.Response(200, text=HTML, headers={"content-type": "application/xhtml+xml"})

        page = make_fetcher(handler).fetch("https://example.com/")
        assert page.content_type == "application/xhtml+xml"

    def test_follows_redirects_within_limit(self):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"location": "https://example.com/new"})
            return httpx.Response(200, text=HTML, headers={"content-type": "text/html"})

        page = make_fetcher(handler).fetch("https://example.com/old")
        assert page.url == "https://example.com/new"


class TestFetchErrors:
    def test_unsupported_content_type(self):
        def handler(request):
            return httpx.Response(200, json={"a": 1})

        with pytest.raises(FetchError, match="only HTML pages are supported"):
            make_fetcher(handler).fetch("https://example.com/api")

    def test_missing_content_type(self):
        def handler(request):
            return httpx.Response(200, content=b"<html></html>")

        with pytest.raises(FetchError, match="only HTML pages"):
            make_fetcher(handler).fetch("https://example.com/")

    def test_non_2xx_status(self):
        def handler(request):
            return httpx.Response(404, text="missing", headers={"content-type": "text/html"})

        with pytest.raises(FetchError, match="HTTP 404") as exc:
            make_fetcher(handler).fetch("https://example.com/gone")
        assert isinstance(exc.value.__cause__, httpx.HTTPStatusError)

    def test_redirect_limit(self):
        def handler(request):
            n = int(request.url.path.strip("/") or 0)
            return httpx.Response(302, headers={"location": f"https://example.com/{n + 1}"})

        with pytest.raises(FetchError, match=f"max {MAX_REDIRECTS}"):
            make_fetcher(handler).fetch("https://example.com/0")

    def test_redirect_into_private_network_blocked(self):
        calls = []

        def handler(request):
            calls.append(str(request.url))
            return httpx.Response(302, headers={"location": "http://127.0.0.1/admin"})

        with pytest.raises(FetchError, match="^Redirected to a disallowed URL"):
            make_fetcher(handler).fetch("https://example.com/")
        # The private hop is never sent
        assert len(calls) == 1

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(FetchError, match="timed out"):
            make_fetcher(handler).fetch("https://example.com/slow")

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError, match="connection refused") as exc:
            make_fetcher(handler).fetch("https://example.com/")
        assert isinstance(exc.value.__cause__, httpx.ConnectError)


    def test_invalid_url_surfaces_as_fetch_error(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text=HTML, headers={"content-type": "text/html"})

        with pytest.raises(FetchError, match="Invalid URL") as exc:
            make_fetcher(handler).fetch("https://example.com/a\x01b")
        assert isinstance(exc.value.__cause__, httpx.InvalidURL)
        assert calls == []

    def test_private_url_rejected_before_sending(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, text=HTML, headers={"content-type": "text/html"})

        with pytest.raises(FetchError) as exc:
            make_fetcher(handler).fetch("http://127.0.0.1/admin")
        assert str(exc.value) == "URL not allowed (private network)"
        assert calls == []


class TestClientLifecycle:
    def test_client_defaults(self):
        client = build_http_client()
        try:
            assert client.timeout.read == 15.0
            assert client.timeout.connect == 15.0
            assert client.headers["accept"] == "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
            assert client.headers["accept"] == ACCEPT
            assert client.max_redirects == MAX_REDIRECTS == 3
            assert client.follow_redirects is True
        finally:
            client.close()

    def test_context_manager_closes_client(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200))
        with fetcher:
            pass
        assert fetcher.client.is_closed
