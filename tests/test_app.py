"""API tests with FastAPI's TestClient and an in-memory monitor."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app import app, get_monitor, limiter
from config import settings
from monitor import PageMonitor
from summarizer import Summarizer


@pytest.fixture
def monitor(store, fetcher):
    return PageMonitor(store, fetcher, Summarizer(None), workers=1)


@pytest.fixture
def client(monitor):
    app.dependency_overrides[get_monitor] = lambda: monitor
    limiter.enabled = False
    yield TestClient(app)
    limiter.enabled = True
    app.dependency_overrides.clear()


def add_link(client, url="https://example.com/page", **extra):
    return client.post("/api/links", json={"url": url, **extra})


class TestLinks:
    def test_add_link(self, client):
        resp = add_link(client, label="  Example  ", tags="")

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["url"] == "https://example.com/page"
        assert body["data"]["label"] == "Example"
        assert body["data"]["tags"] is None

    def test_url_required(self, client):
        resp = client.post("/api/links", json={"label": "no url"})
        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": "URL is required"}

    def test_unsafe_url_rejected(self, client):
        resp = add_link(client, "http://localhost:8080/")
        assert resp.status_code == 400
        assert resp.json()["error"] == "URL not allowed (private network)"

    def test_duplicate_rejected(self, client):
        add_link(client)
        resp = add_link(client, " https://example.com/page ")
        assert resp.status_code == 409

    def test_link_cap(self, client, monkeypatch):
        monkeypatch.setattr(settings, "MAX_LINKS", 1)
        add_link(client)

        resp = add_link(client, "https://example.org/")

        assert resp.status_code == 400
        assert "Maximum of 1 links reached" in resp.json()["error"]

    def test_list_links_with_latest_check(self, client, monitor):
        link = add_link(client).json()["data"]
        assert client.get("/api/links").json()["data"][0]["latestCheck"] is None

        monitor.run_check(link["id"])
        data = client.get("/api/links").json()["data"]

        assert data[0]["id"] == link["id"]
        assert data[0]["latestCheck"]["status"] == "baseline"
        assert data[0]["lastChecked"] is not None

    def test_delete_link(self, client):
        link = add_link(client).json()["data"]

        resp = client.delete(f"/api/links/{link['id']}")

        assert resp.json() == {"success": True, "data": {"id": link["id"]}}
        assert client.get("/api/links").json()["data"] == []

    def test_delete_unknown_link(self, client):
        assert client.delete("/api/links/missing").status_code == 404


class TestHistory:
    def test_history_newest_first(self, client, monitor):
        link = add_link(client).json()["data"]
        monitor.run_check(link["id"])
        monitor.run_check(link["id"])

        data = client.get(f"/api/history/{link['id']}").json()["data"]

        assert [c["status"] for c in data] == ["unchanged", "baseline"]
        assert data[0]["hasChanges"] is False
        assert len(data[0]["contentHash"]) == 64

    def test_history_unknown_link(self, client):
        assert client.get("/api/history/missing").status_code == 404


class TestCheck:
    def test_check_single_link(self, client):
        link = add_link(client).json()["data"]

        resp = client.post("/api/check", json={"linkId": link["id"]})

        data = resp.json()["data"]
        assert resp.status_code == 200
        assert data["linkId"] == link["id"]
        assert data["hasChanges"] is False
        assert data["summary"].startswith("First snapshot captured")
        assert data["diff"] is None

    def test_check_unknown_link(self, client):
        resp = client.post("/api/check", json={"linkId": "missing"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "Link not found"

    def test_failed_check_is_reported_and_saved(self, client, fetcher):
        link = add_link(client).json()["data"]
        fetcher.fetch.side_effect = RuntimeError("socket closed")

        resp = client.post("/api/check", json={"linkId": link["id"]})

        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "failed"
        assert resp.json()["data"]["error"] == "socket closed"
        history = client.get(f"/api/history/{link['id']}").json()["data"]
        assert [c["error"] for c in history] == ["socket closed"]

    def test_store_outage_keeps_envelope(self, client, monitor):
        link = add_link(client).json()["data"]
        monitor.store.record_check = MagicMock(side_effect=ConnectionError("db down"))

        resp = client.post("/api/check", json={"linkId": link["id"]})

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Check failed: db down"}

    def test_check_all_links(self, client):
        add_link(client)
        add_link(client, "https://example.org/")

        resp = client.post("/api/check")

        data = resp.json()["data"]
        assert len(data) == 2
        assert all(d["status"] == "baseline" for d in data)


class TestStatus:
    def test_status(self, client):
        data = client.get("/api/status").json()["data"]

        assert data["backend"]["ok"] is True
        assert data["database"]["ok"] is True
        assert data["llm"]["ok"] is False

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert "openrouter_configured" in body
