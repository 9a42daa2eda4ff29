"""
Scraper Configuration - Environment-based settings and kill switch

Environment Variables:
    SCRAPING_ENABLED: 'true' or 'false' (default: 'true')
        Kill switch for scheduled scrapes.

    DATABASE_URL: SQLAlchemy URL for the record store.
        PostgreSQL in production; sqlite:/// accepted for local runs.

    SCRAPER_TIMEOUT_SECONDS: float (default: 9)
        Hard per-adapter wall-clock budget. Kept under the 10s serverless
        execution window of the hosting platform.

    SCRAPER_MAX_CONCURRENCY: int (default: 6)
        Maximum number of adapters running at once.

    PERSIST_BATCH_SIZE: int (default: 100)
    RUN_CACHE_TTL_SECONDS: int (default: 3600)
    SCRAPE_MIN_INTERVAL_MINUTES: int (default: 30)
    SCRAPE_JOB_MAX_RETRIES: int (default: 3)
    LOG_LEVEL: default 'INFO'
"""
import os
import logging
from typing import Optional
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DISABLED_VALUES = ('false', '0', 'no', 'off', 'disabled')


def _get_int(name: str, default: int, minimum: int = 1) -> int:
    try:
        value = int(os.environ.get(name, str(default)))
    except ValueError:
        logger.warning(f"Invalid {name}, defaulting to {default}")
        return default
    return max(minimum, value)


def _get_float(name: str, default: float, minimum: float = 0.0) -> float:
    try:
        value = float(os.environ.get(name, str(default)))
    except ValueError:
        logger.warning(f"Invalid {name}, defaulting to {default}")
        return default
    return max(minimum, value)


# =============================================================================
# Kill Switch
# =============================================================================

def is_scraping_enabled() -> bool:
    """
    Check if scheduled scraping is enabled.

    Environment:
        SCRAPING_ENABLED: 'true' (default) or 'false'
    """
    enabled = os.environ.get('SCRAPING_ENABLED', 'true').lower()
    if enabled in DISABLED_VALUES:
        logger.warning("Scraping is DISABLED via SCRAPING_ENABLED")
        return False
    return True


# =============================================================================
# Run Budgets
# =============================================================================

def get_adapter_timeout_seconds() -> float:
    """Per-adapter hard timeout (default 9s)."""
    return _get_float('SCRAPER_TIMEOUT_SECONDS', 9.0, minimum=0.1)


def get_max_concurrency() -> int:
    return _get_int('SCRAPER_MAX_CONCURRENCY', 6)


def get_persist_batch_size() -> int:
    return _get_int('PERSIST_BATCH_SIZE', 100)


def get_run_cache_ttl_seconds() -> int:
    return _get_int('RUN_CACHE_TTL_SECONDS', 3600)


def get_min_interval_minutes() -> int:
    return _get_int('SCRAPE_MIN_INTERVAL_MINUTES', 30, minimum=0)


def get_job_max_retries() -> int:
    return _get_int('SCRAPE_JOB_MAX_RETRIES', 3)


def get_log_level() -> str:
    return os.environ.get('LOG_LEVEL', 'INFO').upper()


# =============================================================================
# Database
# =============================================================================

def get_database_url() -> Optional[str]:
    """
    Get and normalize DATABASE_URL.

    Returns None when unset so callers can run without persistence
    (dry runs, adapter smoke tests).

    For cloud PostgreSQL, automatically adds sslmode=require if missing.
    """
    database_url = os.environ.get('DATABASE_URL')
    if not database_url:
        return None

    # Handle Render's postgres:// format (SQLAlchemy requires postgresql://)
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)

    if not database_url.startswith('postgresql'):
        return database_url

    parsed = urlparse(database_url)
    is_localhost = parsed.hostname in ('localhost', '127.0.0.1', None)

    if not is_localhost:
        query_params = parse_qs(parsed.query)
        if 'sslmode' not in query_params:
            query_params['sslmode'] = ['require']
            new_query = urlencode(query_params, doseq=True)
            database_url = urlunparse((
                parsed.scheme, parsed.netloc, parsed.path,
                parsed.params, new_query, parsed.fragment
            ))

    return database_url


class Config:
    """Engine options shared by db.engine."""

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
    }
