"""
Content hashing for change detection.

The record store compares a hash of a record's listing fields against the
stored one to tell an unchanged re-scrape from a real update.
"""
import hashlib
import json
from datetime import date, datetime
from enum import Enum
from typing import Any


def normalize_json_for_hash(data: Any) -> Any:
    """
    Canonical form of data for hashing.

    Dict keys are sorted and None values dropped; lists keep their order.
    Enums hash by value, dates by ISO string, and runs of whitespace in
    strings collapse to one space.
    """
    if isinstance(data, dict):
        return {
            str(k): normalize_json_for_hash(v)
            for k, v in sorted(data.items(), key=lambda item: str(item[0]))
            if v is not None
        }
    if isinstance(data, (list, tuple)):
        return [normalize_json_for_hash(item) for item in data]
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    if isinstance(data, str):
        return " ".join(data.split())
    return data


def compute_json_hash(data: Any) -> str:
    """64-character SHA256 hex digest of the normalized JSON of data."""
    payload = json.dumps(normalize_json_for_hash(data), sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
