"""
Behance Adapter - Project covers from behance.net search.

The creative field shown on each cover ("Graphic Design", "UI/UX") is used
as the category hint and also kept as a tag. Behance does not expose saves
on covers, so saves stay 0.
"""
import re
from typing import Optional

from bs4.element import Tag

from ..base import BaseScraper, first_count, select_colors
from ..models.records import RawRecord

_GALLERY_ID_RE = re.compile(r"/gallery/(\d+)")


class BehanceScraper(BaseScraper):
    """Behance project adapter."""

    SCRAPER_NAME = "behance"

    def parse_card(self, card: Tag, page_url: str) -> Optional[RawRecord]:
        sel = self.config.selectors

        title = self.require(self.select_text(card, sel.title), "title")
        url = self.require(
            self.absolute_url(self.select_attr(card, sel.link, "href"), page_url), "url"
        )
        match = _GALLERY_ID_RE.search(url)
        source_id = self.require(match.group(1) if match else None, "gallery id")

        field = self.select_text(card, ".ProjectCover-field, .js-project-field")
        tags = self.select_texts(card, sel.tags)
        if field:
            tags.append(field)

        owner = card.select_one(".ProjectCover-owner, .js-mini-profile")
        author = None
        if owner is not None:
            author = {
                "name": self.select_text(owner, ".ProjectCover-owner-name, .user-name")
                or owner.get_text(" ", strip=True) or None,
                "profile_url": self.absolute_url(owner.get("href"), page_url),
            }

        date = self.select_attr(card, sel.date, "datetime") or self.select_text(card, sel.date)

        return {
            "title": title,
            "url": url,
            "source_id": source_id,
            "image_url": self.absolute_url(
                self.select_attr(card, sel.image, "src", "data-src", "srcset"), page_url
            ),
            "date": date or None,
            "tags": tags,
            "category_hint": field or None,
            "colors": select_colors(card, ".project-color-swatch, .color-palette-item"),
            "stats": {
                "views": first_count(self.select_text(card, sel.views)),
                "likes": first_count(self.select_text(card, sel.likes)),
                "saves": 0,
            },
            "platform_data": {"author": author, "field": field or None},
        }
