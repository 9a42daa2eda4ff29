"""
Canonical record types.

RawRecord is whatever an adapter's card parser produced: a plain dict,
unvalidated. CanonicalRecord is only ever built by the normalizer and is
frozen afterwards; a later scrape produces a new record that replaces the
stored row rather than mutating this one.
"""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..categories import CanonicalCategory

RawRecord = Dict[str, Any]


class RecordKind(str, Enum):
    """What a source lists."""
    HACKATHON = "hackathon"
    DESIGN = "design"


@dataclass(frozen=True)
class RecordStats:
    views: int = 0
    likes: int = 0
    saves: int = 0


@dataclass(frozen=True)
class CanonicalRecord:
    """Normalized cross-source record. (source_name, source_id) is the merge key."""
    title: str
    url: str
    source_name: str
    source_id: str
    kind: RecordKind = RecordKind.DESIGN
    description: str = ""
    category: CanonicalCategory = CanonicalCategory.UNCATEGORIZED
    tags: Tuple[str, ...] = ()
    image_url: Optional[str] = None
    published_or_deadline_date: Optional[datetime] = None
    stats: RecordStats = field(default_factory=RecordStats)
    platform_data: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    is_trending: bool = False

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source_name, self.source_id)

    def content_fields(self) -> Dict[str, Any]:
        """Fields that describe the listing itself (used for change hashing)."""
        return {
            "title": self.title,
            "url": self.url,
            "kind": self.kind.value,
            "description": self.description,
            "category": self.category.value,
            "tags": list(self.tags),
            "image_url": self.image_url,
            "published_or_deadline_date": self.published_or_deadline_date,
            "stats": asdict(self.stats),
            "platform_data": self.platform_data,
            "is_active": self.is_active,
            "is_trending": self.is_trending,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.content_fields()
        data["source_name"] = self.source_name
        data["source_id"] = self.source_id
        if self.published_or_deadline_date is not None:
            data["published_or_deadline_date"] = self.published_or_deadline_date.isoformat()
        return data

    def __repr__(self):
        return f"<CanonicalRecord {self.source_name}:{self.source_id} {self.title[:40]!r}>"
