"""Cumulus Adapter - Design challenges from cumulus.iq."""
import re
from typing import Optional

from bs4.element import Tag

from ..base import BaseScraper, first_count, last_path_segment
from ..models.records import RawRecord

_CHALLENGE_ID_RE = re.compile(r"/challenges?/([^/?#]+)")
_FINISHED_WORDS = ("closed", "ended", "completed")


class CumulusScraper(BaseScraper):
    """Cumulus challenge listing adapter."""

    SCRAPER_NAME = "cumulus"

    def parse_card(self, card: Tag, page_url: str) -> Optional[RawRecord]:
        sel = self.config.selectors

        title = self.require(self.select_text(card, sel.title), "title")
        href = self.select_attr(card, sel.link, "href") or self.select_attr(card, "a", "href")
        if not href and card.parent is not None and card.parent.name == "a":
            href = card.parent.get("href")
        url = self.require(self.absolute_url(href, page_url), "url")

        match = _CHALLENGE_ID_RE.search(url)
        source_id = match.group(1) if match else last_path_segment(url)

        status = self.select_text(card, ".challenge-status, .status-badge")
        prizes = self.select_texts(card, ".prize-pool, .total-prize")

        return {
            "title": title,
            "url": url,
            "source_id": source_id,
            "description": self.select_text(card, sel.description),
            "image_url": self.absolute_url(
                self.select_attr(card, sel.image, "src", "data-src", "data-lazy-src"), page_url
            ),
            "date": self.select_text(card, sel.date) or None,
            "tags": self.select_texts(card, sel.tags),
            "is_active": not any(word in status.lower() for word in _FINISHED_WORDS),
            "platform_data": {
                "organization": self.select_text(card, ".challenge-org, .organization-name") or None,
                "prizes": prizes,
                "participants": first_count(self.select_text(card, ".participant-count, .team-count")),
                "difficulty": self.select_text(card, ".difficulty-level") or None,
                "status": status or None,
            },
        }
