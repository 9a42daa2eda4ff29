"""
Canonical category taxonomy and per-source mapping tables.

map_category() is a pure function of (native_tag, source_name). Source
tables are plain data; adding a source means adding a table entry, not a
branch. Lookup order:

1. Exact match in the source's table
2. Keyword heuristics over the native tag text
3. UNCATEGORIZED
"""
from enum import Enum
from typing import Dict, Iterable, Optional

from .keywords import categorize_by_keywords


class CanonicalCategory(str, Enum):
    """Cross-source category values stored on canonical records."""
    COLOR_TYPOGRAPHY = "color-typography"
    ILLUSTRATIONS = "illustrations"
    BRANDING_LOGOS = "branding-logos"
    UI_UX = "ui-ux"
    THREE_D_ANIMATIONS = "3d-animations"
    EXPERIMENTAL = "experimental"
    UNCATEGORIZED = "uncategorized"


C = CanonicalCategory

BEHANCE_CATEGORY_MAP: Dict[str, CanonicalCategory] = {
    'graphic-design': C.BRANDING_LOGOS,
    'graphic design': C.BRANDING_LOGOS,
    'branding': C.BRANDING_LOGOS,
    'logo': C.BRANDING_LOGOS,
    'logo-design': C.BRANDING_LOGOS,
    'brand-identity': C.BRANDING_LOGOS,
    'ui-ux': C.UI_UX,
    'ui/ux': C.UI_UX,
    'user-interface': C.UI_UX,
    'user-experience': C.UI_UX,
    'web-design': C.UI_UX,
    'app-design': C.UI_UX,
    'illustration': C.ILLUSTRATIONS,
    'digital-illustration': C.ILLUSTRATIONS,
    'character-design': C.ILLUSTRATIONS,
    'typography': C.COLOR_TYPOGRAPHY,
    'type-design': C.COLOR_TYPOGRAPHY,
    'lettering': C.COLOR_TYPOGRAPHY,
    'color': C.COLOR_TYPOGRAPHY,
    '3d': C.THREE_D_ANIMATIONS,
    '3d-art': C.THREE_D_ANIMATIONS,
    '3d-design': C.THREE_D_ANIMATIONS,
    'motion': C.THREE_D_ANIMATIONS,
    'motion-graphics': C.THREE_D_ANIMATIONS,
    'animation': C.THREE_D_ANIMATIONS,
    'experimental': C.EXPERIMENTAL,
    'digital-art': C.EXPERIMENTAL,
    'creative-direction': C.EXPERIMENTAL,
}

DRIBBBLE_CATEGORY_MAP: Dict[str, CanonicalCategory] = {
    'branding': C.BRANDING_LOGOS,
    'brand': C.BRANDING_LOGOS,
    'brand-design': C.BRANDING_LOGOS,
    'logo': C.BRANDING_LOGOS,
    'logo-design': C.BRANDING_LOGOS,
    'identity': C.BRANDING_LOGOS,
    'illustration': C.ILLUSTRATIONS,
    'illustrator': C.ILLUSTRATIONS,
    'character': C.ILLUSTRATIONS,
    'vector': C.ILLUSTRATIONS,
    'mobile': C.UI_UX,
    'mobile-design': C.UI_UX,
    'web-design': C.UI_UX,
    'web': C.UI_UX,
    'ui': C.UI_UX,
    'ux': C.UI_UX,
    'interface': C.UI_UX,
    'app': C.UI_UX,
    'typography': C.COLOR_TYPOGRAPHY,
    'type': C.COLOR_TYPOGRAPHY,
    'lettering': C.COLOR_TYPOGRAPHY,
    'color': C.COLOR_TYPOGRAPHY,
    'palette': C.COLOR_TYPOGRAPHY,
    'animation': C.THREE_D_ANIMATIONS,
    '3d': C.THREE_D_ANIMATIONS,
    'motion': C.THREE_D_ANIMATIONS,
    'cinema4d': C.THREE_D_ANIMATIONS,
    'aftereffects': C.THREE_D_ANIMATIONS,
    'experimental': C.EXPERIMENTAL,
    'abstract': C.EXPERIMENTAL,
    'concept': C.EXPERIMENTAL,
}

AWWWARDS_CATEGORY_MAP: Dict[str, CanonicalCategory] = {
    'typography': C.COLOR_TYPOGRAPHY,
    'graphic-design': C.BRANDING_LOGOS,
    'branding': C.BRANDING_LOGOS,
    'ui-design': C.UI_UX,
    'ux-design': C.UI_UX,
    'web-design': C.UI_UX,
    'mobile': C.UI_UX,
    'illustration': C.ILLUSTRATIONS,
    '3d': C.THREE_D_ANIMATIONS,
    'animation': C.THREE_D_ANIMATIONS,
    'motion-design': C.THREE_D_ANIMATIONS,
    'experimental': C.EXPERIMENTAL,
    'innovation': C.EXPERIMENTAL,
}

# Hackathon platforms expose themes rather than design fields
HACKATHON_THEME_MAP: Dict[str, CanonicalCategory] = {
    'design': C.UI_UX,
    'ui/ux': C.UI_UX,
    'ui-ux': C.UI_UX,
    'web': C.UI_UX,
    'mobile': C.UI_UX,
    'ar/vr': C.THREE_D_ANIMATIONS,
    'gaming': C.THREE_D_ANIMATIONS,
    'beginner friendly': C.UNCATEGORIZED,
    'machine learning/ai': C.EXPERIMENTAL,
    'social good': C.EXPERIMENTAL,
}

SOURCE_CATEGORY_MAPS: Dict[str, Dict[str, CanonicalCategory]] = {
    'behance': BEHANCE_CATEGORY_MAP,
    'dribbble': DRIBBBLE_CATEGORY_MAP,
    'awwwards': AWWWARDS_CATEGORY_MAP,
    'devpost': HACKATHON_THEME_MAP,
    'unstop': HACKATHON_THEME_MAP,
    'cumulus': HACKATHON_THEME_MAP,
}


def _normalize_tag(native_tag: str) -> str:
    return " ".join(native_tag.lower().split())


def map_category(native_tag: Optional[str], source_name: Optional[str]) -> CanonicalCategory:
    """
    Translate a source's native category label into the canonical enum.

    Args:
        native_tag: Label as shown by the source (e.g. 'Graphic Design')
        source_name: Source identifier

    Returns:
        CanonicalCategory, UNCATEGORIZED when nothing matches
    """
    if not native_tag or not isinstance(native_tag, str):
        return C.UNCATEGORIZED

    table = SOURCE_CATEGORY_MAPS.get((source_name or "").lower(), {})
    tag = _normalize_tag(native_tag)

    for candidate in (tag, tag.replace(' ', '-')):
        if candidate in table:
            return table[candidate]

    matched = categorize_by_keywords(tag)
    if matched:
        return C(matched[0])

    return C.UNCATEGORIZED


def resolve_category(
    native_tags: Iterable[str],
    source_name: str,
    text: str = "",
) -> CanonicalCategory:
    """
    Pick a category for a record from all of its native labels.

    The first label that maps to something other than UNCATEGORIZED wins;
    otherwise keyword heuristics run over the record's free text.
    """
    for tag in native_tags:
        category = map_category(tag, source_name)
        if category is not C.UNCATEGORIZED:
            return category

    matched = categorize_by_keywords(text)
    if matched:
        return C(matched[0])
    return C.UNCATEGORIZED


def is_valid_category(value: Optional[str]) -> bool:
    return value in {c.value for c in CanonicalCategory}


def native_category(category: Optional[CanonicalCategory], source_name: str) -> Optional[str]:
    """
    Reverse lookup: the first native label of a source that maps to category.

    Used to turn a canonical category filter into a source listing filter.
    """
    if category is None or category is C.UNCATEGORIZED:
        return None
    for label, mapped in SOURCE_CATEGORY_MAPS.get(source_name, {}).items():
        if mapped is category:
            return label
    return None
