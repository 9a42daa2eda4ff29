"""
Awwwards Adapter - Awarded websites from awwwards.com.

Awwwards has no likes; the average of the non-zero jury scores (design,
usability, creativity, content) times 100 is used instead. Awards and
scores are kept in platform_data, and awards are also added as tags.
"""
import re
from typing import Dict, List, Optional

from bs4.element import Tag

from ..base import BaseScraper, first_count, last_path_segment, select_colors
from ..models.records import RawRecord

_SITE_ID_RE = re.compile(r"sites/([^/?#]+)")

SCORE_SELECTORS = {
    "design": ".js-vote-design, .vote__number--design",
    "usability": ".js-vote-usability, .vote__number--usability",
    "creativity": ".js-vote-creativity, .vote__number--creativity",
    "content": ".js-vote-content, .vote__number--content",
}


def average_score(scores: Dict[str, float]) -> float:
    nonzero = [s for s in scores.values() if s > 0]
    return sum(nonzero) / len(nonzero) if nonzero else 0.0


class AwwwardsScraper(BaseScraper):
    """Awwwards site adapter."""

    SCRAPER_NAME = "awwwards"

    def _scores(self, card: Tag) -> Dict[str, float]:
        scores = {}
        for name, selector in SCORE_SELECTORS.items():
            try:
                scores[name] = float(self.select_text(card, selector) or 0)
            except ValueError:
                scores[name] = 0.0
        return scores

    def _awards(self, card: Tag) -> List[str]:
        awards = []
        for element in card.select(".trophy, .badge, .ribbon"):
            award = element.get("title") or element.get_text(" ", strip=True)
            if award and award not in awards:
                awards.append(award)
        return awards

    def parse_card(self, card: Tag, page_url: str) -> Optional[RawRecord]:
        sel = self.config.selectors

        title = self.require(self.select_text(card, sel.title), "title")
        href = self.select_attr(card, sel.link, "href")
        url = self.require(self.absolute_url(href, page_url), "url")

        match = _SITE_ID_RE.search(url)
        source_id = card.get("data-id") or (match.group(1) if match else last_path_segment(url))

        scores = self._scores(card)
        awards = self._awards(card)
        tags = [t.lower() for t in self.select_texts(card, ".tags a, .content__tags a")]
        tags.extend(a.lower() for a in awards)

        author = self.select_text(card, ".by, .content__by")
        author = re.sub(r"^by\s+", "", author, flags=re.IGNORECASE) or None

        date = self.select_attr(card, sel.date, "datetime") or self.select_text(card, "time, .date")

        return {
            "title": title,
            "url": url,
            "source_id": source_id,
            "image_url": self.absolute_url(
                self.select_attr(card, sel.image, "data-src", "src", "data-srcset"), page_url
            ),
            "date": date or None,
            "tags": tags,
            "category_hint": self.select_text(card, ".content__type, .category") or None,
            "colors": select_colors(card, ".color, .palette-color"),
            "stats": {
                "views": first_count(self.select_text(card, sel.views)),
                "likes": round(average_score(scores) * 100),
                "saves": first_count(self.select_text(card, sel.saves)),
            },
            "platform_data": {
                "scores": scores,
                "awards": awards,
                "author": author,
            },
        }
