"""Value types passed between pipeline stages."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Target:
    """A monitored page: store identifier plus URL."""
    id: str
    url: str


@dataclass(frozen=True)
class Snapshot:
    """Normalized page text captured at one point in time."""
    text: str
    digest: str


@dataclass(frozen=True)
class RawPage:
    url: str
    html: str
    content_type: str
    status_code: int


@dataclass(frozen=True)
class ExtractedText:
    text: str
    title: str


@dataclass(frozen=True)
class DiffResult:
    unified: str
    added: int
    removed: int
    has_changes: bool
    snippet: str


@dataclass(frozen=True)
class SummaryResult:
    """Summary text, or the unavailability sentinel when `available` is False."""
    text: str
    available: bool
    # "not_configured" or "failed" when unavailable
    reason: Optional[str] = None


class OutcomeStatus(str, Enum):
    BASELINE = "baseline"    # first observation, nothing to compare against
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineOutcome:
    """Terminal value of one pipeline run for one target."""
    target_id: str
    status: OutcomeStatus
    has_changes: bool = False
    summary: Optional[str] = None
    diff: Optional[str] = None
    snippet: Optional[str] = None
    content_hash: str = ""
    text: Optional[str] = None
    error: Optional[str] = None
    summary_error: Optional[str] = None
    checked_at: datetime = field(default_factory=_utcnow)

    @property
    def failed(self) -> bool:
        return self.status is OutcomeStatus.FAILED

    def to_dict(self) -> dict:
        """API shape. Raw text is left out; it is only needed by the store."""
        return {
            "linkId": self.target_id,
            "status": self.status.value,
            "hasChanges": self.has_changes,
            "summary": self.summary,
            "diff": self.diff,
            "snippet": self.snippet,
            "checkedAt": self.checked_at.isoformat(),
            "error": self.error,
            "summaryError": self.summary_error,
        }
