"""
Source Configuration Table - One immutable entry per scraped source.

Every URL, selector and budget an adapter needs lives here instead of in
the adapter body. The table is validated at import time so a typo fails
process startup rather than a scrape run.

Hackathon sources:  devpost, unstop, cumulus
Design sources:     behance, dribbble, awwwards

Rate limits are not here; see rate_limits.yaml.
"""
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple
from urllib.parse import quote_plus, urlparse

from .errors import ConfigurationError
from .models.records import RecordKind

# Resource types the browser strategy aborts for speed when blocking is enabled
HEAVY_RESOURCE_TYPES: FrozenSet[str] = frozenset({"image", "stylesheet", "font", "media"})


@dataclass(frozen=True)
class SourceSelectors:
    """CSS selectors for one source's listing cards (comma lists allowed)."""
    card: str
    title: str
    link: str
    description: str = ""
    image: str = ""
    date: str = ""
    tags: str = ""
    views: str = ""
    likes: str = ""
    saves: str = ""
    load_more: str = ""


@dataclass(frozen=True)
class SourceConfig:
    """Configuration for a single source."""
    name: str
    display_name: str
    kind: RecordKind
    base_url: str
    listing_url: str
    selectors: SourceSelectors
    search_url: Optional[str] = None  # format string with {query}
    category_url: Optional[str] = None  # format string with {category}
    enabled: bool = True
    priority: int = 100  # lower runs first when concurrency is bounded
    max_scrolls: int = 3
    scroll_wait_seconds: float = 1.5
    navigation_timeout_ms: int = 8000
    selector_timeout_ms: int = 5000
    max_retries: int = 2
    retry_delay_seconds: float = 1.0
    block_resources: FrozenSet[str] = field(default_factory=frozenset)
    max_limit: int = 50

    def url_for(self, query: Optional[str] = None, category: Optional[str] = None) -> str:
        """Listing URL for a request, preferring search, then category, then listing."""
        if query and self.search_url:
            return self.search_url.format(query=quote_plus(query))
        if category and self.category_url:
            return self.category_url.format(category=quote_plus(category))
        return self.listing_url


SOURCE_CONFIGS: Dict[str, SourceConfig] = {
    "devpost": SourceConfig(
        name="devpost",
        display_name="Devpost",
        kind=RecordKind.HACKATHON,
        base_url="https://devpost.com",
        listing_url="https://devpost.com/hackathons",
        search_url="https://devpost.com/hackathons?search={query}",
        selectors=SourceSelectors(
            card=".challenge-listing",
            title=".challenge-listing__title",
            link=".challenge-listing__title a, a",
            description=".challenge-listing__tagline",
            image=".challenge-listing__image img",
            date=".challenge-listing__deadline",
            tags=".challenge-listing__tags a",
            load_more=".load-more-button",
        ),
        priority=10,
        max_scrolls=5,
        scroll_wait_seconds=2.0,
        max_retries=3,
        retry_delay_seconds=2.0,
    ),
    "unstop": SourceConfig(
        name="unstop",
        display_name="Unstop",
        kind=RecordKind.HACKATHON,
        base_url="https://unstop.com",
        listing_url="https://unstop.com/hackathons",
        search_url="https://unstop.com/hackathons?searchTerm={query}",
        selectors=SourceSelectors(
            card=".single_profile",
            title=".single_profile_name",
            link="a",
            description=".single_profile_desc",
            image=".img_listing img",
            date="[data-date]",
            tags=".opportunity-tag",
        ),
        priority=20,
        max_scrolls=2,
        max_retries=3,
        retry_delay_seconds=2.0,
        block_resources=HEAVY_RESOURCE_TYPES,
    ),
    "cumulus": SourceConfig(
        name="cumulus",
        display_name="Cumulus",
        kind=RecordKind.HACKATHON,
        base_url="https://www.cumulus.iq",
        listing_url="https://www.cumulus.iq/challenges",
        selectors=SourceSelectors(
            card=".challenge-card, .challenge-item",
            title=".challenge-title, .card-title, h3",
            link='a[href*="/challenge/"], a[href*="/challenges/"]',
            description=".challenge-description, .card-description",
            image=".challenge-image img, .card-image img",
            date=".deadline, .end-date, .challenge-deadline",
            tags=".challenge-tag, .skill-tag",
        ),
        priority=30,
        max_scrolls=1,
        max_retries=3,
        retry_delay_seconds=2.0,
    ),
    "behance": SourceConfig(
        name="behance",
        display_name="Behance",
        kind=RecordKind.DESIGN,
        base_url="https://www.behance.net",
        listing_url="https://www.behance.net/search/projects",
        search_url="https://www.behance.net/search/projects?search={query}",
        category_url="https://www.behance.net/search/projects?field={category}",
        selectors=SourceSelectors(
            card=".ProjectCover, .js-project",
            title=".ProjectCover-title, .js-project-title, h3",
            link="a.js-project-link, .ProjectCover-link, a",
            image="img.ProjectCover-image, .js-cover-image, img",
            date=".ProjectCover-published, time, .js-published-date",
            tags=".ProjectCover-tag, .js-project-tag",
            views=".ProjectCover-stats-views, .js-view-count",
            likes=".ProjectCover-stats-appreciations, .js-appreciation-count",
        ),
        priority=40,
        max_scrolls=3,
        scroll_wait_seconds=1.5,
        max_limit=100,
    ),
    "dribbble": SourceConfig(
        name="dribbble",
        display_name="Dribbble",
        kind=RecordKind.DESIGN,
        base_url="https://dribbble.com",
        listing_url="https://dribbble.com/shots/popular",
        search_url="https://dribbble.com/search/shots?q={query}&s=popular",
        category_url="https://dribbble.com/shots/popular/{category}",
        selectors=SourceSelectors(
            card=".shot-thumbnail, .dribbble-shot, li[data-thumbnail]",
            title=".shot-title, .dribbble-link, h3",
            link="a.shot-thumbnail-link, .dribbble-link, a",
            description=".shot-description, .comment",
            image="img.shot-image, .dribbble-img, figure img",
            date="time, .shot-time",
            tags=".shot-tag, .tag",
            views=".js-shot-views-count, .shot-views",
            likes=".js-shot-likes-count, .shot-likes",
            saves=".js-shot-saves-count, .shot-saves",
            load_more='.load-more, button[data-target="more-shots"]',
        ),
        priority=50,
        max_scrolls=3,
        scroll_wait_seconds=1.5,
        max_retries=2,
        retry_delay_seconds=1.5,
        max_limit=100,
    ),
    "awwwards": SourceConfig(
        name="awwwards",
        display_name="Awwwards",
        kind=RecordKind.DESIGN,
        base_url="https://www.awwwards.com",
        listing_url="https://www.awwwards.com/websites/",
        category_url="https://www.awwwards.com/websites/{category}/",
        selectors=SourceSelectors(
            card=".list-items article, .grid__item, .js-grid-item",
            title=".js-vote-title, h3, .content__title",
            link="a.js-visit, .content__link, a",
            image="img, .lazy",
            date="time",
            tags=".tag, .tags a",
            views=".views",
            saves=".bt-item__likes",
        ),
        priority=60,
        max_scrolls=2,
        max_retries=2,
        max_limit=100,
    ),
}


# =============================================================================
# Validation
# =============================================================================

def _is_http_url(value: str) -> bool:
    parsed = urlparse(value.replace("{query}", "q").replace("{category}", "c"))
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_source_configs(configs: Dict[str, SourceConfig]) -> List[str]:
    """
    Validate a source table.

    Returns:
        Validated source names

    Raises:
        ConfigurationError: On the first invalid entry
    """
    if not configs:
        raise ConfigurationError("No sources configured")

    for key, config in configs.items():
        problems = []
        if key != config.name:
            problems.append(f"table key {key!r} != name {config.name!r}")
        for attr in ("base_url", "listing_url"):
            if not _is_http_url(getattr(config, attr)):
                problems.append(f"{attr} is not an absolute http(s) URL")
        if config.search_url and "{query}" not in config.search_url:
            problems.append("search_url lacks {query}")
        if config.category_url and "{category}" not in config.category_url:
            problems.append("category_url lacks {category}")
        if not config.selectors.card or not config.selectors.title or not config.selectors.link:
            problems.append("card, title and link selectors are required")
        if not 1 <= config.max_retries <= 3:
            problems.append("max_retries must be between 1 and 3")
        if config.max_scrolls < 0:
            problems.append("max_scrolls must be >= 0")
        if config.scroll_wait_seconds <= 0 or config.retry_delay_seconds < 0:
            problems.append("wait/delay values must be positive")
        if config.max_limit < 1:
            problems.append("max_limit must be >= 1")
        unknown = set(config.block_resources) - HEAVY_RESOURCE_TYPES
        if unknown:
            problems.append(f"unknown resource types {sorted(unknown)}")

        if problems:
            raise ConfigurationError("; ".join(problems), source_name=key)

    return list(configs)


def get_source_config(source_name: str) -> SourceConfig:
    """Look up a source, raising ConfigurationError if unknown."""
    try:
        return SOURCE_CONFIGS[source_name]
    except KeyError:
        raise ConfigurationError(f"Unknown source: {source_name}") from None


def sources_by_priority(names: Optional[Tuple[str, ...]] = None) -> List[str]:
    names = names if names is not None else tuple(SOURCE_CONFIGS)
    return sorted(names, key=lambda n: (SOURCE_CONFIGS[n].priority if n in SOURCE_CONFIGS else 999, n))


validate_source_configs(SOURCE_CONFIGS)
