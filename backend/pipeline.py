"""
One page check: validate -> fetch -> extract -> hash -> diff -> summarize.

Stateless: the previous snapshot comes from the caller's store and the
outcome goes back to the caller to persist. Every expected failure becomes
a FAILED outcome instead of an exception.
"""

import logging
from typing import Optional, Protocol

from differ import compute_diff, compute_hash, has_changed
from errors import ExtractionError, FetchError, ValidationError
from extractor import extract_text
from fetcher import PageFetcher
from models import OutcomeStatus, PipelineOutcome, Snapshot, Target
from summarizer import Summarizer
from validator import validate_url

logger = logging.getLogger(__name__)

BASELINE_SUMMARY = "First snapshot captured — changes will be tracked from this point."


class SnapshotSource(Protocol):
    def get_most_recent_snapshot(self, target_id: str) -> Optional[Snapshot]: ...


def check_target(
    target: Target,
    snapshots: SnapshotSource,
    fetcher: PageFetcher,
    summarizer: Summarizer,
) -> PipelineOutcome:
    try:
        url = validate_url(target.url).geturl()
        page = fetcher.fetch(url)
        extracted = extract_text(page.html, page.url)
    except (ValidationError, FetchError, ExtractionError) as e:
        logger.warning(f"Check failed for {target.url}: {e}")
        return PipelineOutcome(target_id=target.id, status=OutcomeStatus.FAILED, error=str(e))

    text = extracted.text
    new_hash = compute_hash(text)
    try:
        previous = snapshots.get_most_recent_snapshot(target.id)
    except Exception as e:
        logger.error(f"Could not load previous snapshot for {target.url}: {e}")
        return PipelineOutcome(
            target_id=target.id,
            status=OutcomeStatus.FAILED,
            error=f"Could not load previous snapshot: {e}",
        )

    if previous is None:
        logger.info(f"Baseline captured for {target.url}")
        return PipelineOutcome(
            target_id=target.id,
            status=OutcomeStatus.BASELINE,
            summary=BASELINE_SUMMARY,
            content_hash=new_hash,
            text=text,
        )

    if not has_changed(previous.digest, new_hash):
        logger.info(f"No changes for {target.url}")
        return PipelineOutcome(
            target_id=target.id,
            status=OutcomeStatus.UNCHANGED,
            content_hash=new_hash,
            text=text,
        )

    diff = compute_diff(previous.text, text)
    logger.info(f"Content changed for {target.url}: +{diff.added} -{diff.removed}")
    summary = summarizer.summarize_result(diff.unified, target.url)

    return PipelineOutcome(
        target_id=target.id,
        status=OutcomeStatus.CHANGED,
        has_changes=True,
        summary=summary.text,
        summary_error=summary.reason,
        diff=diff.unified,
        snippet=diff.snippet,
        content_hash=new_hash,
        text=text,
    )
