"""
Readable-text extraction: turn a fetched HTML page into normalized main-content text.

trafilatura picks the main content and drops navigation, ads and other
boilerplate. When it finds nothing, the visible body text is used instead.
Output whitespace is collapsed so that reflowed markup does not register as
a content change.
"""

import logging
import re
from urllib.parse import urlparse

import trafilatura
from bs4 import BeautifulSoup

from errors import ExtractionError
from models import ExtractedText

logger = logging.getLogger(__name__)

# Tags that only hold markup, never visible text
INVISIBLE_TAGS = ["script", "style", "noscript", "template"]

WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    return WHITESPACE.sub(" ", text).strip()


def _readable_text(html: str, base_url: str) -> str:
    try:
        extracted = trafilatura.extract(
            html,
            url=base_url,
            include_comments=False,
            include_links=False,
            include_images=False,
            include_tables=True,
            favor_recall=True,
            output_format="txt",
        )
    except Exception as e:
        logger.warning(f"trafilatura extraction failed for {base_url}: {e}")
        return ""
    return normalize_whitespace(extracted or "")


def _body_text(soup: BeautifulSoup) -> str:
    for tag in soup.find_all(INVISIBLE_TAGS):
        tag.decompose()
    body = soup.body or soup
    return normalize_whitespace(body.get_text(" "))


def extract_text(html: str, base_url: str) -> ExtractedText:
    """Extract normalized readable text. Raises ExtractionError when nothing is left."""
    html = html or ""
    soup = BeautifulSoup(html, "lxml")

    title = ""
    if soup.title:
        title = normalize_whitespace(soup.title.get_text())
    title = title or urlparse(base_url).hostname or base_url

    text = _readable_text(html, base_url) if html.strip() else ""

    if not text:
        logger.info(f"No main content found for {base_url}, falling back to body text")
        text = _body_text(soup)

    if not text:
        raise ExtractionError("Could not extract readable text from this page")

    return ExtractedText(text=text, title=title)
