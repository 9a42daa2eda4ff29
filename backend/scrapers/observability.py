"""
Structured scraper events.

Every run, adapter and persistence milestone is emitted as a single log
line of the form ``SCRAPER_<EVENT> {json}`` so log aggregation can filter
and parse them without a dedicated metrics backend.
"""
import json
import logging
import sys
import uuid
from typing import Any

logger = logging.getLogger("scrapers.events")


def new_run_id() -> str:
    return str(uuid.uuid4())


def log_event(event: str, level: int = logging.INFO, **payload: Any) -> None:
    logger.log(
        level, "SCRAPER_%s %s", event.upper(), json.dumps(payload, default=str, sort_keys=True)
    )


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging for CLI and scheduled job entry points."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    # Avoid duplicate handlers on repeated CLI invocations
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        root.addHandler(handler)
