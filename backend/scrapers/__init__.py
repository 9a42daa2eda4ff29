"""
Scrape Orchestration Package

Concurrent scraping of hackathon and design-inspiration listings with:
- Per-source sliding-window rate limiting
- Browser-first extraction with static-fetch fallback
- Canonical normalization and category mapping
- Run-level result caching
- Batched idempotent persistence
"""

from .base import BaseScraper
from .categories import CanonicalCategory, map_category
from .models import CanonicalRecord, RunOptions, RunResult
from .orchestrator import ScrapingOrchestrator, run_scrape_job

__all__ = [
    "BaseScraper",
    "CanonicalCategory",
    "CanonicalRecord",
    "map_category",
    "RunOptions",
    "RunResult",
    "ScrapingOrchestrator",
    "run_scrape_job",
]
