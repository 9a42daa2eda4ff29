"""
Cache key helpers.

Stable, normalized cache keys so that equivalent run options always hit
the same entry regardless of argument order.
"""
from datetime import date, datetime
from enum import Enum
import json
from typing import Any, Dict, Iterable, Optional


def _normalize_cache_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_normalize_cache_value(v) for v in value]
    if isinstance(value, dict):
        return {k: _normalize_cache_value(v) for k, v in sorted(value.items())}
    return value


def normalize_cache_params(
    params: Dict[str, Any],
    *,
    include_keys: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """
    Normalize params for cache keys.

    - Skips empty values
    - Sorts keys for stability
    - Normalizes dates, enums and nested structures
    """
    allowed = set(include_keys) if include_keys is not None else None
    filtered: Dict[str, Any] = {}
    for key, value in params.items():
        if allowed is not None and key not in allowed:
            continue
        if value in (None, "", [], (), {}):
            continue
        filtered[key] = _normalize_cache_value(value)
    return {k: filtered[k] for k in sorted(filtered.keys())}


def build_json_cache_key(
    prefix: str,
    params: Dict[str, Any],
    *,
    include_keys: Optional[Iterable[str]] = None
) -> str:
    normalized = normalize_cache_params(params, include_keys=include_keys)
    return f"{prefix}:{json.dumps(normalized, sort_keys=True)}"
