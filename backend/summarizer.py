"""
LLM summaries of page diffs via OpenRouter (OpenAI-compatible API).

The system prompt keeps the model grounded in the literal +/- lines of the
diff. Each attempt produces an explicit Ok / Retryable / Fatal result; the
retry loop backs off exponentially and degrades to a fixed sentinel string
so a summarizer outage never blocks recording the check itself.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Union

from openai import OpenAI, OpenAIError

from config import settings
from errors import ConfigurationError, TransientSummaryError
from models import SummaryResult

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a high-precision webpage change analyst.
Your task is to summarize the changes in a provided unified diff.

RULES:
1. ONLY summarize what is explicitly added (+) or removed (-) in the text.
2. DO NOT describe design, layout, styling or visual intent unless the diff text literally states it.
3. DO NOT mention file names or directory structures unless they appear as specific text changes in the diff.
4. If the diff shows technical metadata (like SEO tags), describe them neutrally as "metadata updates" without assuming intent.
5. Be concise: 2-4 sentences.
6. Use plain, professional language."""

UNAVAILABLE = "AI summary unavailable — check status page or verify OPENROUTER_API_KEY"
SUMMARY_NOT_CONFIGURED = "not_configured"
SUMMARY_FAILED = "failed"

MAX_DIFF_CHARS = 24000  # ~8k tokens at ~3 chars/token
MAX_ATTEMPTS = 3
BASE_DELAY_MS = 1000
TEMPERATURE = 0.3
MAX_TOKENS = 300


@dataclass(frozen=True)
class Ok:
    text: str


@dataclass(frozen=True)
class Retryable:
    cause: Exception


@dataclass(frozen=True)
class Fatal:
    cause: Exception


AttemptResult = Union[Ok, Retryable, Fatal]


def build_openrouter_client(api_key: str | None = None) -> OpenAI | None:
    """OpenAI SDK client pointed at OpenRouter. None when no key is configured."""
    api_key = settings.OPENROUTER_API_KEY if api_key is None else api_key
    if not api_key:
        return None
    return OpenAI(
        api_key=api_key,
        base_url=settings.OPENROUTER_BASE_URL,
        default_headers={
            "HTTP-Referer": settings.APP_URL,
            "X-Title": "Web Monitor",
        },
        # Retries are handled by Summarizer itself
        max_retries=0,
    )


def truncate_diff(diff: str, max_chars: int = MAX_DIFF_CHARS) -> str:
    """Keep the head and tail of an oversized diff, dropping the middle."""
    if len(diff) <= max_chars:
        return diff

    half = max_chars // 2
    omitted = len(diff) - 2 * half
    return (
        f"{diff[:half]}"
        f"\n\n... [diff truncated: {omitted} characters omitted] ...\n\n"
        f"{diff[-half:]}"
    )


def backoff_delay_ms(attempt: int) -> int:
    """Delay after failed attempt number `attempt` (1-based)."""
    return BASE_DELAY_MS * 2 ** (attempt - 1)


class Summarizer:
    def __init__(
        self,
        client: OpenAI | None,
        model: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.model = model or settings.SUMMARY_MODEL
        self.sleep = sleep

    @property
    def configured(self) -> bool:
        return self.client is not None

    def _require_client(self) -> OpenAI:
        if self.client is None:
            raise ConfigurationError(
                "OPENROUTER_API_KEY is not set; configure it in .env to enable AI summaries"
            )
        return self.client

    def _attempt(self, messages: list[dict]) -> AttemptResult:
        try:
            client = self._require_client()
        except ConfigurationError as e:
            return Fatal(e)

        try:
            resp = client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
            )
            content = resp.choices[0].message.content if resp.choices else None
        except OpenAIError as e:
            return Retryable(TransientSummaryError(str(e)))
        except Exception as e:
            # Malformed responses from OpenRouter proxies are transient too
            return Retryable(TransientSummaryError(f"{type(e).__name__}: {e}"))

        if not content or not content.strip():
            return Retryable(TransientSummaryError("LLM returned empty response"))
        return Ok(content.strip())

    def summarize_result(self, diff: str, url: str) -> SummaryResult:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"URL: {url}\n\nDiff:\n{truncate_diff(diff)}"},
        ]

        for attempt in range(1, MAX_ATTEMPTS + 1):
            result = self._attempt(messages)

            if isinstance(result, Ok):
                return SummaryResult(text=result.text, available=True)

            if isinstance(result, Fatal):
                logger.error(f"LLM summarization not configured: {result.cause}")
                return SummaryResult(text=UNAVAILABLE, available=False, reason=SUMMARY_NOT_CONFIGURED)

            if attempt == MAX_ATTEMPTS:
                logger.error(f"LLM summarization failed after {MAX_ATTEMPTS} attempts: {result.cause}")
                return SummaryResult(text=UNAVAILABLE, available=False, reason=SUMMARY_FAILED)

            delay = backoff_delay_ms(attempt)
            logger.warning(f"LLM attempt {attempt} failed, retrying in {delay}ms: {result.cause}")
            self.sleep(delay / 1000)

        return SummaryResult(text=UNAVAILABLE, available=False, reason=SUMMARY_FAILED)

    def summarize(self, diff: str, url: str) -> str:
        """Summary text, or the UNAVAILABLE sentinel. Never raises."""
        return self.summarize_result(diff, url).text

    def check_health(self) -> int:
        """One-token round trip. Returns latency in ms; errors propagate."""
        start = time.monotonic()
        client = self._require_client()
        client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": "Hi"}],
            max_tokens=1,
        )
        return int((time.monotonic() - start) * 1000)
