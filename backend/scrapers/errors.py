"""
Scraper error taxonomy.

Item-level errors (ParseError, ValidationError) are logged and skipped.
Adapter-level errors (ExtractionError, NavigationError, AdapterTimeout)
reduce a source's contribution to zero records for the run.
PersistenceBatchError is counted per batch. ConfigurationError is the only
error that reaches the caller, and then only as an empty RunResult.

Rate-limit waits are expected backpressure, not errors. They are reported
through the RateLimitWait event instead.
"""
from dataclasses import dataclass
from typing import Optional


class ScraperError(Exception):
    """Base exception for scraping errors."""

    def __init__(self, message: str, source_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source_name = source_name

    def __str__(self):
        if self.source_name:
            return f"[{self.source_name}] {self.message}"
        return self.message


class ExtractionError(ScraperError):
    """Adapter exhausted every strategy and retry."""
    pass


class NavigationError(ExtractionError):
    """Page could not be loaded (navigation, selector wait, launch, HTTP status)."""
    pass


class AdapterTimeout(ScraperError):
    """Adapter exceeded its wall-clock budget or observed a cancelled token."""
    pass


class ParseError(ScraperError):
    """A single listing card could not be parsed."""
    pass


class PersistenceBatchError(ScraperError):
    """One upsert batch failed."""

    def __init__(self, message: str, batch_index: int, batch_size: int):
        super().__init__(message)
        self.batch_index = batch_index
        self.batch_size = batch_size


class ConfigurationError(ScraperError):
    """Invalid source configuration or run options."""
    pass


class ValidationError(ValueError):
    """Raised when a raw record cannot be normalized to a canonical record."""

    def __init__(self, message: str, field: str = None, received_value=None):
        super().__init__(message)
        self.field = field
        self.received_value = received_value


@dataclass(frozen=True)
class RateLimitWait:
    """Backpressure event emitted when a throttle call has to sleep."""
    source_name: str
    wait_seconds: float
    queued_requests: int
