"""Error types raised by the change-detection pipeline."""


class MonitorError(Exception):
    """Base class for every failure a page check can report."""


class ValidationError(MonitorError):
    """URL is malformed, uses an unsupported scheme, or points at a private host."""


class FetchError(MonitorError):
    """The page could not be retrieved as HTML."""


class ExtractionError(MonitorError):
    """No readable text could be pulled out of the page."""


class ConfigurationError(MonitorError):
    """A required credential is missing. Never retried."""


class TransientSummaryError(MonitorError):
    """The LLM backend failed or answered with nothing. Safe to retry."""
