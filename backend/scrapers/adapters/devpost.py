"""
Devpost Adapter - Design-related hackathons from devpost.com.

Devpost lists every kind of hackathon, so cards are filtered through the
design keyword heuristics. Cards without theme tags get tags derived from
their title and tagline.

Source id: the hackathon's subdomain (https://<id>.devpost.com/) or, for
path-style links, the last path segment.
"""
import logging
from typing import Optional
from urllib.parse import urlparse

from bs4.element import Tag

from ..base import BaseScraper, element_attr, first_count, last_path_segment
from ..keywords import extract_design_tags, is_design_related
from ..models.records import RawRecord

logger = logging.getLogger(__name__)


def devpost_id(url: str) -> Optional[str]:
    host = urlparse(url).hostname or ""
    if host.endswith(".devpost.com") and host not in ("devpost.com", "www.devpost.com"):
        return host[: -len(".devpost.com")]
    return last_path_segment(url)


class DevpostScraper(BaseScraper):
    """Devpost hackathon listing adapter."""

    SCRAPER_NAME = "devpost"

    def parse_card(self, card: Tag, page_url: str) -> Optional[RawRecord]:
        sel = self.config.selectors

        title = self.require(self.select_text(card, sel.title), "title")
        href = self.select_attr(card, sel.link, "href") or element_attr(card, "href")
        url = self.require(self.absolute_url(href, page_url), "url")

        description = self.select_text(card, sel.description)
        tags = [t.lower() for t in self.select_texts(card, sel.tags)]

        text = " ".join([title, description, *tags])
        if not is_design_related(text):
            logger.debug(f"[devpost] skipping non-design hackathon: {title}")
            return None
        if not tags:
            tags = extract_design_tags(text)

        image = self.select_attr(card, sel.image, "src", "data-src")
        prizes = self.select_text(card, ".challenge-listing__prizes")

        return {
            "title": title,
            "url": url,
            "source_id": devpost_id(url),
            "description": description,
            "image_url": self.absolute_url(image, page_url),
            "date": self.select_text(card, sel.date) or None,
            "tags": tags,
            "platform_data": {
                "prizes": [prizes] if prizes else [],
                "participants": first_count(self.select_text(card, ".challenge-listing__participants")),
            },
        }
