"""
Stored Record Model - Latest scraped version of each listing.

One row per (source_name, source_id). Every scrape replaces the row's
listing fields; created_at is only set on insert.
"""
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from .database import Base


class StoredRecord(Base):
    """Persisted canonical record."""

    __tablename__ = "scraped_records"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Merge key
    source_name = Column(String(50), nullable=False, index=True)
    source_id = Column(String(255), nullable=False)

    kind = Column(String(20), nullable=False, index=True)  # hackathon, design
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    url = Column(String(2048), nullable=False)
    category = Column(String(50), nullable=False, default="uncategorized", index=True)
    tags = Column(JSON, nullable=False, default=list)
    image_url = Column(String(2048))
    published_or_deadline_date = Column(DateTime)

    views = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    saves = Column(Integer, nullable=False, default=0)

    platform_data = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    is_trending = Column(Boolean, nullable=False, default=False)

    # SHA256 of listing fields for change detection
    content_hash = Column(String(64), nullable=False)

    # Lifecycle
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    last_scraped_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("source_name", "source_id", name="uq_scraped_record_source"),
        Index("ix_scraped_records_active_date", "is_active", "published_or_deadline_date"),
    )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "source_name": self.source_name,
            "source_id": self.source_id,
            "kind": self.kind,
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "category": self.category,
            "tags": self.tags or [],
            "image_url": self.image_url,
            "published_or_deadline_date": (
                self.published_or_deadline_date.isoformat()
                if self.published_or_deadline_date else None
            ),
            "stats": {"views": self.views, "likes": self.likes, "saves": self.saves},
            "platform_data": self.platform_data or {},
            "is_active": self.is_active,
            "is_trending": self.is_trending,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_scraped_at": self.last_scraped_at.isoformat() if self.last_scraped_at else None,
        }

    def __repr__(self):
        return f"<StoredRecord {self.source_name}:{self.source_id} active={self.is_active}>"
