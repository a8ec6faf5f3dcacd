"""
Page monitor: run checks for stored links and record the outcomes.

Wraps the stateless pipeline with persistence (check history, last-checked
time, pruning) and batch execution over a bounded worker pool. Each link's
check is isolated: one failing link never aborts the others.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from config import settings
from fetcher import PageFetcher
from models import OutcomeStatus, PipelineOutcome, Target
from pipeline import check_target
from store import SnapshotStore
from summarizer import Summarizer

logger = logging.getLogger(__name__)


class PageMonitor:
    def __init__(
        self,
        store: SnapshotStore,
        fetcher: PageFetcher,
        summarizer: Summarizer,
        max_checks: int | None = None,
        workers: int | None = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.summarizer = summarizer
        self.max_checks = max_checks or settings.MAX_CHECKS_PER_LINK
        self.workers = max(1, workers or settings.CHECK_WORKERS)

    # ----- Single link -----

    def run_check(self, link_id: str) -> PipelineOutcome:
        """Check one link and persist the result, failed or not. Raises LookupError for unknown links."""
        link = self.store.get_link(link_id)
        if not link:
            raise LookupError("Link not found")

        try:
            outcome = check_target(Target(id=link["id"], url=link["url"]), self.store, self.fetcher, self.summarizer)
        except Exception as e:
            logger.error(f"Unexpected error checking {link_id}: {e}")
            outcome = PipelineOutcome(target_id=link_id, status=OutcomeStatus.FAILED, error=str(e))

        self.store.record_check(outcome)
        self.store.touch_link(link_id, outcome.checked_at.isoformat())

        pruned = self.store.prune_checks(link_id, self.max_checks)
        if pruned:
            logger.debug(f"Pruned {pruned} old checks for {link_id}")

        return outcome

    def _safe_check(self, link_id: str) -> PipelineOutcome:
        try:
            return self.run_check(link_id)
        except Exception as e:
            logger.error(f"Could not check {link_id}: {e}")
            return PipelineOutcome(target_id=link_id, status=OutcomeStatus.FAILED, error=str(e))

    # ----- Batch -----

    def run_all(
        self,
        link_ids: list[str] | None = None,
        on_progress: Callable[[dict], None] | None = None,
    ) -> list[PipelineOutcome]:
        """Check many links (all stored links by default). Results keep input order."""
        if link_ids is None:
            link_ids = [link["id"] for link in self.store.list_links()]

        started_at = time.time()
        stats = {
            "status": "running",
            "total_links": len(link_ids),
            "links_checked": 0,
            "links_baseline": 0,
            "links_changed": 0,
            "links_unchanged": 0,
            "links_error": 0,
            "elapsed_seconds": 0,
        }
        stats_lock = threading.Lock()
        counter_key = {
            OutcomeStatus.BASELINE: "links_baseline",
            OutcomeStatus.CHANGED: "links_changed",
            OutcomeStatus.UNCHANGED: "links_unchanged",
            OutcomeStatus.FAILED: "links_error",
        }

        def work(link_id: str) -> PipelineOutcome:
            outcome = self._safe_check(link_id)
            with stats_lock:
                stats["links_checked"] += 1
                stats[counter_key[outcome.status]] += 1
                stats["elapsed_seconds"] = time.time() - started_at
                _report(on_progress, stats)
            return outcome

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            results = list(pool.map(work, link_ids))

        stats["status"] = "complete"
        stats["elapsed_seconds"] = time.time() - started_at
        _report(on_progress, stats)
        logger.info(
            f"Checked {len(results)} links in {stats['elapsed_seconds']:.1f}s: "
            f"{stats['links_changed']} changed, {stats['links_error']} errors"
        )
        return results

    # ----- Health -----

    def status(self) -> dict:
        """Backend, database and LLM health with latencies. Never raises."""
        result = {
            "backend": {"ok": True, "latencyMs": 0},
            "database": {"ok": False, "latencyMs": 0, "error": None},
            "llm": {"ok": False, "latencyMs": 0, "error": None},
        }

        try:
            db_start = time.monotonic()
            self.store.count_links()
            result["database"] = {
                "ok": True,
                "latencyMs": int((time.monotonic() - db_start) * 1000),
                "error": None,
            }
        except Exception as e:
            result["database"]["error"] = str(e)

        try:
            latency = self.summarizer.check_health()
            result["llm"] = {"ok": True, "latencyMs": latency, "error": None}
        except Exception as e:
            result["llm"]["error"] = str(e)

        return result


def _report(callback: Callable | None, stats: dict):
    if callback:
        callback(stats.copy())
