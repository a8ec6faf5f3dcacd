"""
Change detection and diffing of extracted page text.

SHA-256 digests give a cheap equality check between observations; the
unified diff is only computed once the digests differ and feeds both the
list-view snippet and the LLM summary.
"""

import difflib
import hashlib
import logging
from typing import Optional

from models import DiffResult

logger = logging.getLogger(__name__)

CONTEXT_LINES = 3
SNIPPET_LENGTH = 200


def compute_hash(text: str) -> str:
    """Hex SHA-256 of the UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def has_changed(previous_digest: Optional[str], new_digest: str) -> bool:
    """Exact digest comparison. No previous digest is not a change."""
    if previous_digest is None:
        return False
    return previous_digest != new_digest


def _is_changed_line(line: str) -> bool:
    return (line.startswith("+") and not line.startswith("+++")) or (
        line.startswith("-") and not line.startswith("---")
    )


def compute_diff(old_text: str, new_text: str) -> DiffResult:
    """Unified diff of two texts plus added/removed line counts."""
    lines = list(difflib.unified_diff(
        old_text.splitlines(),
        new_text.splitlines(),
        fromfile="previous",
        tofile="current",
        n=CONTEXT_LINES,
        lineterm="",
    ))
    unified = "\n".join(lines)

    added = sum(1 for line in lines if line.startswith("+") and not line.startswith("+++"))
    removed = sum(1 for line in lines if line.startswith("-") and not line.startswith("---"))
    has_changes = added > 0 or removed > 0

    if not has_changes and old_text != new_text:
        logger.warning("Texts differ but the unified diff has no changed lines")

    return DiffResult(
        unified=unified,
        added=added,
        removed=removed,
        has_changes=has_changes,
        snippet=extract_snippet(unified),
    )


def extract_snippet(diff: str, max_length: int = SNIPPET_LENGTH) -> str:
    """Short preview of the changed lines for list views."""
    changed: list[str] = []
    for line in diff.split("\n"):
        if _is_changed_line(line):
            changed.append(line)
        if len(" ".join(changed)) > max_length:
            break

    joined = " ".join(changed)
    if len(joined) > max_length:
        return joined[:max_length] + "..."
    return joined
