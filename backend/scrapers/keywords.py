"""
Design keyword tables and text heuristics.

Used to:
- Filter generic hackathon listings down to design-related ones
- Derive tags from free text when a source exposes none
- Pick default search queries per source (rotated between runs)
- Guess a canonical category when a source's native taxonomy has no mapping
"""
import logging
import re
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)

DESIGN_KEYWORDS: Tuple[str, ...] = (
    # Core
    'design', 'designer', 'ui', 'ux', 'ui/ux', 'user interface',
    'user experience', 'product design', 'visual design', 'interaction design',
    # Graphic
    'graphic design', 'graphics', 'illustration', 'typography', 'branding',
    'logo design', 'identity design', 'brand identity',
    # Web / app
    'web design', 'app design', 'mobile design', 'responsive design',
    'interface design', 'digital design', 'website design',
    # Creative
    'creative', 'creativity', 'art', 'artistic', 'visual arts', 'digital art',
    'creative coding',
    # Tools
    'figma', 'sketch', 'adobe', 'photoshop', 'illustrator', 'xd',
    'design system', 'wireframe', 'prototype', 'mockup',
    # 3D / motion
    '3d design', '3d modeling', 'animation', 'motion design', 'motion graphics',
    'after effects', 'blender', 'cinema 4d',
    # Emerging
    'ar design', 'vr design', 'augmented reality', 'virtual reality',
    'game design', 'metaverse', 'generative design', 'ai design',
)

EXCLUDE_KEYWORDS: Tuple[str, ...] = (
    'circuit design',
    'chip design',
    'hardware design',
    'pcb design',
    'system design interview',
    'database design',
    'network design',
    'architecture design',
)

# 'architecture design' is allowed when it is really about information/user architecture
EXCLUDE_EXCEPTIONS: Dict[str, Tuple[str, ...]] = {
    'architecture design': ('information architecture', 'user architecture'),
}

PLATFORM_SEARCH_QUERIES: Dict[str, Tuple[str, ...]] = {
    'devpost': ('design', 'ui ux', 'graphic design', 'creative', 'user experience', 'product design'),
    'unstop': ('design challenge', 'ui/ux competition', 'graphic design', 'creative challenge', 'design hackathon'),
    'cumulus': ('design',),
    'behance': ('ui design', 'branding', 'illustration', 'typography', 'motion design', 'web design'),
    'dribbble': ('ui', 'web design', 'mobile design', 'illustration', 'branding', 'animation'),
}

CATEGORY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    'color-typography': (
        'typography', 'typeface', 'font', 'color palette', 'color scheme',
        'color theory', 'lettering', 'calligraphy',
    ),
    'illustrations': (
        'illustration', 'illustrator', 'drawing', 'digital illustration',
        'vector art', 'character design', 'concept art', 'editorial illustration',
    ),
    'branding-logos': (
        'branding', 'logo', 'brand identity', 'visual identity', 'brand design',
        'logo design', 'trademark', 'brand guidelines',
    ),
    'ui-ux': (
        'ui design', 'ux design', 'user interface', 'user experience',
        'app design', 'web design', 'dashboard', 'mobile app',
    ),
    '3d-animations': (
        '3d', 'animation', 'motion', 'motion graphics', '3d modeling',
        'cinema 4d', 'blender', 'after effects',
    ),
    'experimental': (
        'experimental', 'generative', 'creative coding', 'interactive',
        'ai art', 'procedural', 'glitch art', 'data visualization',
    ),
}

MAX_DERIVED_TAGS = 10

_WORD_CACHE: Dict[str, re.Pattern] = {}


def _contains(text: str, keyword: str) -> bool:
    """Whole-word containment, so 'ui' does not match 'build'."""
    pattern = _WORD_CACHE.get(keyword)
    if pattern is None:
        pattern = re.compile(r'(?<![a-z0-9])' + re.escape(keyword) + r'(?![a-z0-9])')
        _WORD_CACHE[keyword] = pattern
    return pattern.search(text) is not None


def _excluded(text: str) -> bool:
    for keyword in EXCLUDE_KEYWORDS:
        if not _contains(text, keyword):
            continue
        exceptions = EXCLUDE_EXCEPTIONS.get(keyword, ())
        if any(_contains(text, exc) for exc in exceptions):
            continue
        logger.debug(f"Excluded due to keyword: {keyword}")
        return True
    return False


def is_design_related(text: str, min_matches: int = 1) -> bool:
    """
    Check whether free text describes a design-related listing.

    Args:
        text: Title/description/tags joined together
        min_matches: Number of distinct design keywords required

    Returns:
        False for empty text or when an exclusion keyword is present
    """
    if not text or not isinstance(text, str):
        return False

    lower = text.lower()
    if _excluded(lower):
        return False

    matches = 0
    for keyword in DESIGN_KEYWORDS:
        if _contains(lower, keyword):
            matches += 1
            if matches >= min_matches:
                return True
    return False


def _slug(keyword: str) -> str:
    return re.sub(r'[\s/]+', '-', keyword.lower())


def extract_design_tags(text: str) -> List[str]:
    """Derive up to 10 slug tags from design and category keywords found in text."""
    if not text or not isinstance(text, str):
        return []

    lower = text.lower()
    tags: List[str] = []
    candidates = list(DESIGN_KEYWORDS)
    for keywords in CATEGORY_KEYWORDS.values():
        candidates.extend(keywords)

    for keyword in candidates:
        if _contains(lower, keyword):
            tag = _slug(keyword)
            if tag not in tags:
                tags.append(tag)
        if len(tags) >= MAX_DERIVED_TAGS:
            break
    return tags


def get_search_query(source_name: str, index: int = 0) -> str:
    """Rotate through the default search queries for a source."""
    queries = PLATFORM_SEARCH_QUERIES.get(source_name)
    if not queries:
        return 'design'
    return queries[index % len(queries)]


def categorize_by_keywords(text: str) -> List[str]:
    """
    Match free text against category keyword lists.

    Returns:
        Category values in table order, each at most once. Empty when
        nothing matches; the caller decides the fallback.
    """
    if not text or not isinstance(text, str):
        return []

    lower = text.lower()
    categories = []
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(_contains(lower, keyword) for keyword in keywords):
            categories.append(category)
    return categories
