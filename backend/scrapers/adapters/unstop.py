"""
Unstop Adapter - Hackathons from unstop.com.

Cards are usually anchors themselves. The deadline is read from the
data-date attribute, not the rendered text. Registration status
"closed"/"ended" marks the record inactive. The browser strategy blocks
images, fonts and stylesheets for this source (see SOURCE_CONFIGS).
"""
import re
from typing import Optional

from bs4.element import Tag

from ..base import BaseScraper, element_attr, first_count, last_path_segment
from ..models.records import RawRecord

_TRAILING_ID_RE = re.compile(r"-(\d+)/?$")
_CLOSED_WORDS = ("closed", "ended")


def unstop_id(url: str) -> Optional[str]:
    path = url.split("?", 1)[0]
    match = _TRAILING_ID_RE.search(path)
    if match:
        return match.group(1)
    return last_path_segment(path)


class UnstopScraper(BaseScraper):
    """Unstop hackathon listing adapter."""

    SCRAPER_NAME = "unstop"

    def parse_card(self, card: Tag, page_url: str) -> Optional[RawRecord]:
        sel = self.config.selectors

        title = self.require(self.select_text(card, sel.title), "title")
        href = element_attr(card, "href") or self.select_attr(card, sel.link, "href")
        url = self.require(self.absolute_url(href, page_url), "url")

        organization = self.select_text(card, ".single_profile_organisation")
        description = self.select_text(card, sel.description)
        if not description and organization:
            description = f"{title} by {organization}"

        status = self.select_text(card, ".registration_status")
        is_active = not any(word in status.lower() for word in _CLOSED_WORDS)

        image = self.select_attr(card, sel.image, "src", "data-src")

        return {
            "title": title,
            "url": url,
            "source_id": unstop_id(url),
            "description": description,
            "image_url": self.absolute_url(image, page_url),
            "date": self.select_attr(card, sel.date, "data-date"),
            "tags": self.select_texts(card, sel.tags),
            "is_active": is_active,
            "platform_data": {
                "organization": organization or None,
                "prize": self.select_text(card, ".prize_amount") or None,
                "participants": first_count(self.select_text(card, ".participants_avg_wrap")),
                "registration_status": status or None,
            },
        }
