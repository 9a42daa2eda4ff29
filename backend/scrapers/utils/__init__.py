"""Scraper utility functions."""

from .cache_key import build_json_cache_key, normalize_cache_params
from .hashing import compute_json_hash, normalize_json_for_hash

__all__ = [
    "build_json_cache_key",
    "normalize_cache_params",
    "compute_json_hash",
    "normalize_json_for_hash",
]
