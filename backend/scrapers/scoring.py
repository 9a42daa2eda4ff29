"""
Trending score.

A scorer is any callable (record, now) -> bool. The default weighs
engagement and doubles the score for recent records:

    score = (likes * 3 + saves * 2 + views * 0.01) * recency_weight
    recency_weight = 2 if the record is at most 7 days old else 1
    trending = score > 100

Weights and threshold are constructor arguments, not product constants.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional

from .models.records import CanonicalRecord

TrendingScorer = Callable[[CanonicalRecord, datetime], bool]


class EngagementTrendingScorer:
    """Weighted engagement score with a recency boost."""

    def __init__(
        self,
        likes_weight: float = 3.0,
        saves_weight: float = 2.0,
        views_weight: float = 0.01,
        recent_days: int = 7,
        recent_multiplier: float = 2.0,
        threshold: float = 100.0,
    ):
        self.likes_weight = likes_weight
        self.saves_weight = saves_weight
        self.views_weight = views_weight
        self.recent_days = recent_days
        self.recent_multiplier = recent_multiplier
        self.threshold = threshold

    def score(self, record: CanonicalRecord, now: datetime) -> float:
        stats = record.stats
        engagement = (
            stats.likes * self.likes_weight
            + stats.saves * self.saves_weight
            + stats.views * self.views_weight
        )
        return engagement * self._recency_weight(record.published_or_deadline_date, now)

    def _recency_weight(self, when: Optional[datetime], now: datetime) -> float:
        if when is None:
            return 1.0
        age = now - when
        if timedelta(0) <= age <= timedelta(days=self.recent_days):
            return self.recent_multiplier
        return 1.0

    def __call__(self, record: CanonicalRecord, now: datetime) -> bool:
        return self.score(record, now) > self.threshold


engagement_trending_score = EngagementTrendingScorer()
