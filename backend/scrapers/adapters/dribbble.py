"""
Dribbble Adapter - Shots from dribbble.com (popular or search).

- Promoted shots and "pro" ad slots are skipped
- Color swatches are kept as hex values (normalizer caps them at 5)
- The first shot tag that maps to a canonical category wins
"""
import re
from typing import Optional

from bs4.element import Tag

from ..base import BaseScraper, first_count, select_colors
from ..models.records import RawRecord

_SHOT_ID_RE = re.compile(r"shots/(\d+)")


class DribbbleScraper(BaseScraper):
    """Dribbble shot adapter."""

    SCRAPER_NAME = "dribbble"

    def _is_promoted(self, card: Tag) -> bool:
        classes = card.get("class") or []
        return "promoted" in classes or card.select_one(".badge-pro, .promoted-badge") is not None

    def parse_card(self, card: Tag, page_url: str) -> Optional[RawRecord]:
        if self._is_promoted(card):
            return None

        sel = self.config.selectors

        title_element = card.select_one(sel.title)
        title = ""
        if title_element is not None:
            title = title_element.get_text(" ", strip=True) or title_element.get("title") or ""
        if not title:
            title = self.select_attr(card, "img", "alt") or ""
        title = self.require(title, "title")

        url = self.require(
            self.absolute_url(self.select_attr(card, sel.link, "href"), page_url), "url"
        )
        match = _SHOT_ID_RE.search(url)
        source_id = self.require(match.group(1) if match else None, "shot id")

        time_element = card.select_one(sel.date)
        date = None
        if time_element is not None:
            date = time_element.get("datetime") or time_element.get("title") or time_element.get_text(strip=True)

        return {
            "title": title,
            "url": url,
            "source_id": source_id,
            "description": self.select_text(card, sel.description),
            "image_url": self.absolute_url(
                self.select_attr(card, sel.image, "data-src", "src", "data-srcset"), page_url
            ),
            "date": date or None,
            "tags": [t.lower() for t in self.select_texts(card, sel.tags)],
            "colors": select_colors(card, ".color-swatch, .shot-color, [style*=background]"),
            "stats": {
                "views": first_count(self.select_text(card, sel.views)),
                "likes": first_count(self.select_text(card, sel.likes)),
                "saves": first_count(self.select_text(card, sel.saves)),
            },
            "platform_data": {
                "author": self.select_text(card, ".user-information .display-name, .shot-user-link") or None,
            },
        }
