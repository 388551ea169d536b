"""
Attribute Similarity
Pairwise compatibility scores between item attributes, plus vector similarity.

Every function returns a value in [0, 1] (cosine similarity: [-1, 1]). A
missing value on either side yields a fixed neutral default instead of a
penalty, so sparse catalog data is not punished.
"""

from typing import List, Optional

import numpy as np

from ..text.taxonomy import (
    ANALOGOUS_COLORS,
    BRAND_TIERS,
    CASUAL_MATERIALS,
    CATEGORY_GROUPS,
    CLOTHING_SIZE_ORDER,
    COLOR_MAP,
    COMPLEMENTARY_COLORS,
    MATERIAL_COMPATIBILITY,
    NEUTRAL_COLORS,
    OCCASION_COMPATIBILITY,
    OUTFIT_COMPATIBILITY,
    PREMIUM_MATERIALS,
    SIZE_GROUPS,
    SYNTHETIC_MATERIALS,
)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip().lower()
    return value or None


def cosine_similarity(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> float:
    """
    Cosine similarity of two L2-normalized vectors (their dot product).

    Returns 0.0 when either vector is missing or dimensions differ.
    """
    if a is None or b is None or len(a) != len(b):
        return 0.0
    return float(np.clip(np.dot(a, b), -1.0, 1.0))


def color_similarity(color1: Optional[str], color2: Optional[str]) -> float:
    c1, c2 = _clean(color1), _clean(color2)
    if not c1 or not c2:
        return 0.0

    c1 = COLOR_MAP.get(c1, c1)
    c2 = COLOR_MAP.get(c2, c2)

    if c1 == c2:
        return 1.0

    if c1 in NEUTRAL_COLORS and c2 in NEUTRAL_COLORS:
        return 0.8

    if c2 in ANALOGOUS_COLORS.get(c1, []) or c1 in ANALOGOUS_COLORS.get(c2, []):
        return 0.7

    # Complementary colors pair well in outfits
    if c2 in COMPLEMENTARY_COLORS.get(c1, []) or c1 in COMPLEMENTARY_COLORS.get(c2, []):
        return 0.6

    return 0.1


def material_similarity(
    material1: Optional[str], material2: Optional[str], occasion: Optional[str] = None
) -> float:
    """
    Material compatibility, optionally in the context of an occasion.

    Args:
        material1: First material
        material2: Second material
        occasion: When given, materials both suited to it score 0.8

    Returns:
        Compatibility score in [0, 1]
    """
    m1, m2 = _clean(material1), _clean(material2)
    if not m1 or not m2:
        return 0.0

    if m1 == m2:
        return 1.0

    occasion = _clean(occasion)
    if occasion and occasion in MATERIAL_COMPATIBILITY:
        compatible = MATERIAL_COMPATIBILITY[occasion]
        if m1 in compatible and m2 in compatible:
            return 0.8

    if m1 in PREMIUM_MATERIALS and m2 in PREMIUM_MATERIALS:
        return 0.7
    if m1 in CASUAL_MATERIALS and m2 in CASUAL_MATERIALS:
        return 0.7
    if m1 in SYNTHETIC_MATERIALS and m2 in SYNTHETIC_MATERIALS:
        return 0.6

    return 0.2


def occasion_similarity(occasion1: Optional[str], occasion2: Optional[str]) -> float:
    o1, o2 = _clean(occasion1), _clean(occasion2)
    if not o1 or not o2:
        return 0.5

    if o1 == o2:
        return 1.0

    if o2 in OCCASION_COMPATIBILITY.get(o1, []) or o1 in OCCASION_COMPATIBILITY.get(o2, []):
        return 0.7

    return 0.3


def size_similarity(
    size1: Optional[str], size2: Optional[str], category: Optional[str] = None
) -> float:
    """
    Size compatibility within the size system of a category.

    The size system is the category's group (footwear, accessories), and
    clothing otherwise.
    """
    s1, s2 = _clean(size1), _clean(size2)
    if not s1 or not s2:
        return 0.5

    if s1 == s2:
        return 1.0

    system = category_group(category) or "clothing"
    groups = SIZE_GROUPS.get(system, SIZE_GROUPS["clothing"])
    for sizes in groups.values():
        if s1 in sizes and s2 in sizes:
            return 0.8

    if s1 in CLOTHING_SIZE_ORDER and s2 in CLOTHING_SIZE_ORDER:
        distance = abs(CLOTHING_SIZE_ORDER.index(s1) - CLOTHING_SIZE_ORDER.index(s2))
        if distance == 1:
            return 0.6
        if distance == 2:
            return 0.4

    return 0.2


def age_group_similarity(age1: Optional[str], age2: Optional[str]) -> float:
    a1, a2 = _clean(age1), _clean(age2)
    if not a1 or not a2:
        return 0.5

    if a1 == a2:
        return 1.0

    if a1 == "all ages" or a2 == "all ages":
        return 0.8

    if {a1, a2} == {"adults", "teens"}:
        return 0.6

    return 0.2


def brand_similarity(brand1: Optional[str], brand2: Optional[str]) -> float:
    """Brand affinity; an exact match is capped at 0.9."""
    b1, b2 = _clean(brand1), _clean(brand2)
    if not b1 or not b2:
        return 0.3

    if b1 == b2:
        return 0.9

    for members, score in BRAND_TIERS.values():
        if b1 in members and b2 in members:
            return score

    return 0.1


def category_similarity(category1: Optional[str], category2: Optional[str]) -> float:
    """
    Category compatibility.

    Categories in different, outfit-compatible groups (clothing with
    footwear, footwear with accessories...) score 0.6.
    """
    c1, c2 = _clean(category1), _clean(category2)
    if not c1 or not c2:
        return 0.0

    if c1 == c2:
        return 1.0

    g1, g2 = category_group(c1), category_group(c2)
    if g1 and g2 and g2 in OUTFIT_COMPATIBILITY.get(g1, []):
        return 0.6

    return 0.2


def price_similarity(price1: Optional[float], price2: Optional[float]) -> float:
    if not price1 or not price2 or price1 <= 0 or price2 <= 0:
        return 0.5

    ratio = min(price1, price2) / max(price1, price2)

    if ratio > 0.8:
        return 1.0
    if ratio > 0.6:
        return 0.8
    if ratio > 0.4:
        return 0.6
    if ratio > 0.2:
        return 0.4
    return 0.1


# === CATEGORY GROUPS ===


def _group_members(group: str) -> List[str]:
    members = CATEGORY_GROUPS[group]
    return [group] + members["core"] + members["related"]


def in_category_group(category: Optional[str], group: str) -> bool:
    """Whether a category belongs to a group (substring match either way)."""
    category = _clean(category)
    if not category:
        return False
    return any(m in category or category in m for m in _group_members(group))


def category_group(category: Optional[str]) -> Optional[str]:
    """First category group (footwear, clothing, accessories) containing a category."""
    for group in CATEGORY_GROUPS:
        if in_category_group(category, group):
            return group
    return None


def share_category_group(category1: Optional[str], category2: Optional[str]) -> bool:
    """Whether two categories fall into any common category group."""
    return any(
        in_category_group(category1, group) and in_category_group(category2, group)
        for group in CATEGORY_GROUPS
    )
