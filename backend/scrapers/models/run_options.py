"""
Pydantic model for scrape run options.

Key features:
- frozen=True: options are immutable for the duration of one run
- enabled_sources accepts a list or a comma-separated string
- category 'all' or '' means no category filter
"""
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..categories import CanonicalCategory

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class RunOptions(BaseModel):
    """Input contract for ScrapingOrchestrator.run()."""
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        extra='forbid',
    )

    limit: int = Field(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Max records per source")
    enabled_sources: Tuple[str, ...] = Field((), description="Source names; empty means all enabled")
    force_refresh: bool = Field(False, description="Bypass the run cache")
    category: Optional[CanonicalCategory] = Field(None, description="Canonical category filter")
    query: Optional[str] = Field(None, max_length=200, description="Search text override")

    @field_validator('enabled_sources', mode='before')
    @classmethod
    def normalize_sources(cls, v):
        """Lower-case, strip and dedupe source names, preserving order."""
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split(',')
        seen = []
        for name in v:
            if not isinstance(name, str):
                raise ValueError(f"source names must be strings, got {name!r}")
            name = name.strip().lower()
            if name and name not in seen:
                seen.append(name)
        return tuple(seen)

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v):
        if v is None:
            return None
        if isinstance(v, str):
            key = v.strip().lower()
            if key in ('', 'all'):
                return None
            return key
        return v

    @field_validator('query', mode='before')
    @classmethod
    def blank_query_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def cache_params(self) -> Dict[str, Any]:
        """Params that identify a run for caching (force_refresh excluded)."""
        params = self.model_dump(mode='json', exclude={'force_refresh'})
        params['enabled_sources'] = sorted(params['enabled_sources'])
        return params
