"""
Persistence for monitored links and their check history.

Two backends share one interface: Supabase for deployments and an
in-process memory store for tests and local runs without a database.
Rows are plain dicts in both, matching what Supabase returns.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional, Protocol

from models import PipelineOutcome, Snapshot

logger = logging.getLogger(__name__)

LINKS_TABLE = "links"
CHECKS_TABLE = "checks"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_row(outcome: PipelineOutcome) -> dict:
    return {
        "link_id": outcome.target_id,
        "checked_at": outcome.checked_at.isoformat(),
        "status": outcome.status.value,
        "content_hash": outcome.content_hash,
        "raw_text": outcome.text,
        "diff": outcome.diff,
        "summary": outcome.summary,
        "snippet": outcome.snippet,
        "has_changes": outcome.has_changes,
        "error": outcome.error,
    }


class SnapshotStore(Protocol):
    def list_links(self) -> list[dict]: ...
    def get_link(self, link_id: str) -> Optional[dict]: ...
    def find_link_by_url(self, url: str) -> Optional[dict]: ...
    def create_link(self, url: str, label: str | None = None, tags: str | None = None) -> dict: ...
    def delete_link(self, link_id: str) -> bool: ...
    def count_links(self) -> int: ...
    def touch_link(self, link_id: str, checked_at: str) -> None: ...
    def get_most_recent_snapshot(self, link_id: str) -> Optional[Snapshot]: ...
    def record_check(self, outcome: PipelineOutcome) -> dict: ...
    def list_checks(self, link_id: str, limit: int = 5) -> list[dict]: ...
    def prune_checks(self, link_id: str, keep: int) -> int: ...


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class MemoryStore:
    """Thread-safe dict-backed store. Checks are kept per link in insertion order."""

    def __init__(self):
        self._lock = threading.Lock()
        self._links: dict[str, dict] = {}
        self._checks: dict[str, list[dict]] = {}

    def list_links(self) -> list[dict]:
        with self._lock:
            links = [dict(link) for link in self._links.values()]
        # Newest first; dict order breaks ties
        return list(reversed(links))

    def get_link(self, link_id: str) -> Optional[dict]:
        with self._lock:
            link = self._links.get(link_id)
            return dict(link) if link else None

    def find_link_by_url(self, url: str) -> Optional[dict]:
        with self._lock:
            for link in self._links.values():
                if link["url"] == url:
                    return dict(link)
        return None

    def create_link(self, url: str, label: str | None = None, tags: str | None = None) -> dict:
        row = {
            "id": str(uuid.uuid4()),
            "url": url,
            "label": label,
            "tags": tags,
            "created_at": _now_iso(),
            "last_checked": None,
        }
        with self._lock:
            self._links[row["id"]] = row
            self._checks[row["id"]] = []
        return dict(row)

    def delete_link(self, link_id: str) -> bool:
        with self._lock:
            self._checks.pop(link_id, None)
            return self._links.pop(link_id, None) is not None

    def count_links(self) -> int:
        with self._lock:
            return len(self._links)

    def touch_link(self, link_id: str, checked_at: str) -> None:
        with self._lock:
            if link_id in self._links:
                self._links[link_id]["last_checked"] = checked_at

    def get_most_recent_snapshot(self, link_id: str) -> Optional[Snapshot]:
        with self._lock:
            for row in reversed(self._checks.get(link_id, [])):
                if not row["error"] and row["raw_text"] is not None:
                    return Snapshot(text=row["raw_text"], digest=row["content_hash"])
        return None

    def record_check(self, outcome: PipelineOutcome) -> dict:
        row = {"id": str(uuid.uuid4()), **_check_row(outcome)}
        with self._lock:
            self._checks.setdefault(outcome.target_id, []).append(row)
        return dict(row)

    def list_checks(self, link_id: str, limit: int = 5) -> list[dict]:
        with self._lock:
            rows = self._checks.get(link_id, [])
            return [dict(r) for r in reversed(rows[-limit:])] if limit > 0 else []

    def prune_checks(self, link_id: str, keep: int) -> int:
        with self._lock:
            rows = self._checks.get(link_id, [])
            excess = max(len(rows) - keep, 0)
            if excess:
                self._checks[link_id] = rows[excess:]
            return excess


# ---------------------------------------------------------------------------
# Supabase
# ---------------------------------------------------------------------------

class SupabaseStore:
    """Store backed by the `links` and `checks` tables."""

    def __init__(self, client):
        self.sb = client

    def list_links(self) -> list[dict]:
        r = self.sb.table(LINKS_TABLE).select("*").order("created_at", desc=True).execute()
        return r.data or []

    def get_link(self, link_id: str) -> Optional[dict]:
        r = self.sb.table(LINKS_TABLE).select("*").eq("id", link_id).limit(1).execute()
        return r.data[0] if r.data else None

    def find_link_by_url(self, url: str) -> Optional[dict]:
        r = self.sb.table(LINKS_TABLE).select("*").eq("url", url).limit(1).execute()
        return r.data[0] if r.data else None

    def create_link(self, url: str, label: str | None = None, tags: str | None = None) -> dict:
        row = {"url": url, "label": label, "tags": tags}
        r = self.sb.table(LINKS_TABLE).insert(row).execute()
        return r.data[0]

    def delete_link(self, link_id: str) -> bool:
        if not self.get_link(link_id):
            return False
        self.sb.table(CHECKS_TABLE).delete().eq("link_id", link_id).execute()
        self.sb.table(LINKS_TABLE).delete().eq("id", link_id).execute()
        return True

    def count_links(self) -> int:
        r = self.sb.table(LINKS_TABLE).select("id", count="exact").execute()
        return r.count or 0

    def touch_link(self, link_id: str, checked_at: str) -> None:
        try:
            self.sb.table(LINKS_TABLE).update({"last_checked": checked_at}).eq("id", link_id).execute()
        except Exception as e:
            logger.warning(f"Update last_checked failed for {link_id}: {e}")

    def get_most_recent_snapshot(self, link_id: str) -> Optional[Snapshot]:
        r = (
            self.sb.table(CHECKS_TABLE)
            .select("content_hash, raw_text")
            .eq("link_id", link_id)
            .is_("error", "null")
            .order("checked_at", desc=True)
            .limit(1)
            .execute()
        )
        if not r.data or r.data[0].get("raw_text") is None:
            return None
        row = r.data[0]
        return Snapshot(text=row["raw_text"], digest=row["content_hash"])

    def record_check(self, outcome: PipelineOutcome) -> dict:
        r = self.sb.table(CHECKS_TABLE).insert(_check_row(outcome)).execute()
        return r.data[0]

    def list_checks(self, link_id: str, limit: int = 5) -> list[dict]:
        r = (
            self.sb.table(CHECKS_TABLE)
            .select("id, link_id, checked_at, status, has_changes, summary, diff, snippet, error, content_hash")
            .eq("link_id", link_id)
            .order("checked_at", desc=True)
            .limit(limit)
            .execute()
        )
        return r.data or []

    def prune_checks(self, link_id: str, keep: int) -> int:
        r = (
            self.sb.table(CHECKS_TABLE)
            .select("id")
            .eq("link_id", link_id)
            .order("checked_at", desc=True)
            .execute()
        )
        stale = [row["id"] for row in (r.data or [])[keep:]]
        if stale:
            self.sb.table(CHECKS_TABLE).delete().in_("id", stale).execute()
        return len(stale)


def build_store(cfg) -> SnapshotStore:
    """Supabase when configured, otherwise an in-memory store."""
    if cfg.SUPABASE_URL and cfg.SUPABASE_SERVICE_ROLE_KEY:
        from supabase import create_client
        return SupabaseStore(create_client(cfg.SUPABASE_URL, cfg.SUPABASE_SERVICE_ROLE_KEY))
    logger.warning("SUPABASE_URL not configured, using in-memory store (history is lost on restart)")
    return MemoryStore()
