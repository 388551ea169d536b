"""
Text Normalization
Case folding, synonym canonicalization, tokenization, and search document
construction for catalog items and queries.
"""

import re
from typing import Any, List, Mapping, Optional

from .taxonomy import COLOR_MAP, MATERIAL_MAP, PRICE_RANGES, PRICE_RANGE_TOP

_COLOR_PATTERNS = [(re.compile(rf"\b{re.escape(k)}\b"), v) for k, v in COLOR_MAP.items()]
_MATERIAL_PATTERNS = [(re.compile(rf"\b{re.escape(k)}\b"), v) for k, v in MATERIAL_MAP.items()]

# Keep word characters, whitespace, hyphens, apostrophes and ampersands (h&m)
_TOKEN_STRIP = re.compile(r"[^\w\s\-'&]")
_UK_SIZE = re.compile(r"^(\d{1,2})uk$")


def normalize_text(value: Optional[str]) -> str:
    """
    Lower-case text and canonicalize color and material synonyms.

    Args:
        value: Raw text (None is treated as empty)

    Returns:
        Normalized text with collapsed whitespace
    """
    if not value:
        return ""

    text = str(value).lower()

    for pattern, canonical in _COLOR_PATTERNS:
        text = pattern.sub(canonical, text)

    for pattern, canonical in _MATERIAL_PATTERNS:
        text = pattern.sub(canonical, text)

    return " ".join(text.split())


def tokenize(text: Optional[str]) -> List[str]:
    """Normalize text and split it into whitespace tokens."""
    normalized = normalize_text(text)
    normalized = _TOKEN_STRIP.sub(" ", normalized)
    return normalized.split()


def normalize_size(size: Optional[str]) -> Optional[str]:
    """
    Normalize a size label to its canonical token.

    Examples:
        "One Size" -> "one_size", "8 UK" -> "8uk", " XL " -> "xl"
    """
    if size is None:
        return None

    s = str(size).strip().lower()
    if not s:
        return None

    if s in ("one size", "one-size", "onesize"):
        return "one_size"

    s = re.sub(r"\s+", "", s)

    uk = _UK_SIZE.match(s)
    if uk:
        return f"{uk.group(1)}uk"

    return s


def price_range_label(price: Any) -> str:
    """Describe a price as a coarse range word ('' when unknown)."""
    try:
        value = float(price)
    except (TypeError, ValueError):
        return ""

    if value <= 0:
        return ""

    for upper, label in PRICE_RANGES:
        if value < upper:
            return label
    return PRICE_RANGE_TOP


def build_search_doc(fields: Mapping[str, Any]) -> str:
    """
    Build a weighted search document from item fields.

    Core fields (name, description, category + brand) are repeated three
    times, key attributes twice, and size/price range once. The result is
    normalized so it can be tokenized directly by the lexical index.

    Args:
        fields: Mapping with item attributes (missing keys are fine)

    Returns:
        Normalized search document
    """

    def text(key: str) -> str:
        value = fields.get(key)
        return "" if value is None else str(value).strip()

    core = [
        part
        for part in (
            text("name"),
            text("description"),
            f"{text('category')} {text('brand')}".strip(),
        )
        if part
    ]

    attributes = [
        f"{label}: {text(key)}"
        for label, key in (
            ("color", "color"),
            ("material", "material"),
            ("occasion", "occasion"),
            ("for", "age_group"),
        )
        if text(key)
    ]

    secondary = []
    if text("size"):
        secondary.append(f"size {text('size')}")
    price_label = price_range_label(fields.get("price"))
    if price_label:
        secondary.append(f"price range: {price_label}")

    return normalize_text(" ".join(core * 3 + attributes * 2 + secondary))
