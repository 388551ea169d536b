"""
Facet Parsing and Filtering
Extract structured constraints from free-text queries and filter items by them.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from ...models.product import Item
from ..text.normalize import normalize_text
from ..text.taxonomy import COLORS, OCCASION_KEYWORDS

logger = logging.getLogger(__name__)

# Price amount: optional currency prefix, digits with thousands separators, optional trailing $
_AMOUNT = r"((?:[$₹]|rs\.?|inr|usd)?\s?\d[\d,]*(?:\.\d+)?\s?\$?)"

_BETWEEN = re.compile(rf"\b(?:between|from)\s+{_AMOUNT}\s+(?:and|to)\s+{_AMOUNT}")
_UNDER = re.compile(rf"(?:\b(?:under|below|less than)\s+|<=?\s*){_AMOUNT}")
_OVER = re.compile(rf"(?:\b(?:over|above|greater than|more than)\s+|>=?\s*){_AMOUNT}")
_EXPLICIT = re.compile(
    r"(?:^|\s)("
    r"[$₹]\s?\d[\d,]*(?:\.\d+)?"
    r"|\d[\d,]*(?:\.\d+)?\s?[$₹]"
    r"|(?:rs|inr|usd)\.?\s*\d[\d,]*(?:\.\d+)?"
    r")"
)
_CURRENCY = re.compile(r"[$₹,\s]|rs\.?|inr|usd|rupees?|dollars?")


class FacetSet(BaseModel):
    """
    Structured constraints parsed from a query.

    An absent (None) facet means unconstrained, never "exclude".
    """

    model_config = ConfigDict(frozen=True)

    category: Optional[str] = None
    brand: Optional[str] = None
    color: Optional[str] = None
    material: Optional[str] = None
    occasion: Optional[str] = None
    age_group: Optional[str] = None
    size: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None

    def present(self) -> Dict[str, Any]:
        """Only the facets that were recognized."""
        return self.model_dump(exclude_none=True)

    @property
    def is_empty(self) -> bool:
        return not self.present()

    @property
    def has_price(self) -> bool:
        return self.price_min is not None or self.price_max is not None


@dataclass(frozen=True)
class FacetVocabulary:
    """Per-facet lists of lower-cased known values, in first-seen catalog order."""

    categories: Tuple[str, ...] = ()
    brands: Tuple[str, ...] = ()
    sizes: Tuple[str, ...] = ()
    colors: Tuple[str, ...] = ()
    materials: Tuple[str, ...] = ()
    occasions: Tuple[str, ...] = ()
    age_groups: Tuple[str, ...] = ()

    @classmethod
    def from_items(cls, items: Iterable[Item]) -> "FacetVocabulary":
        """Collect unique non-empty attribute values from catalog items."""
        items = list(items)

        def unique(attr: str) -> Tuple[str, ...]:
            seen: Dict[str, None] = {}
            for item in items:
                value = getattr(item, attr)
                if value:
                    seen.setdefault(str(value).strip().lower(), None)
            return tuple(seen)

        return cls(
            categories=unique("category"),
            brands=unique("brand"),
            sizes=unique("size"),
            colors=unique("color"),
            materials=unique("material"),
            occasions=unique("occasion"),
            age_groups=unique("age_group"),
        )

    def is_brand_or_category(self, token: str) -> bool:
        token = token.lower()
        return token in self.brands or token in self.categories


def _term_pattern(value: str, guard: str = r"\w") -> re.Pattern:
    """Whole-term pattern for a vocabulary value; inner whitespace matches any run."""
    body = r"\s+".join(re.escape(part) for part in value.split())
    return re.compile(rf"(?<!{guard}){body}(?!{guard})")


def _first_match(query: str, values: Sequence[str], guard: str = r"\w") -> Optional[str]:
    for value in values:
        if value and _term_pattern(value, guard).search(query):
            return value
    return None


def parse_amount(text: Optional[str]) -> Optional[float]:
    """
    Parse a price amount, stripping currency symbols, words and separators.

    Examples:
        "$2,000" -> 2000.0, "rs 500" -> 500.0, "40$" -> 40.0
    """
    if not text:
        return None
    cleaned = _CURRENCY.sub("", text.lower())
    try:
        return float(cleaned)
    except ValueError:
        return None


def _parse_price(query: str) -> Dict[str, float]:
    price: Dict[str, float] = {}

    m = _BETWEEN.search(query)
    if m:
        a, b = parse_amount(m.group(1)), parse_amount(m.group(2))
        if a is not None and b is not None:
            price["price_min"] = min(a, b)
            price["price_max"] = max(a, b)

    if "price_max" not in price:
        m = _UNDER.search(query)
        if m and (value := parse_amount(m.group(1))) is not None:
            price["price_max"] = value

    if "price_min" not in price:
        m = _OVER.search(query)
        if m and (value := parse_amount(m.group(1))) is not None:
            price["price_min"] = value

    if not price:
        m = _EXPLICIT.search(query)
        if m and (value := parse_amount(m.group(1))) is not None:
            price["price_min"] = value
            price["price_max"] = value

    return price


def infer_occasion(query: str, known: Sequence[str]) -> Optional[str]:
    """First occasion whose keywords appear in a normalized query, if the catalog uses it."""
    for occasion, keywords in OCCASION_KEYWORDS:
        if occasion not in known:
            continue
        if any(re.search(rf"\b{keyword}\b", query) for keyword in keywords):
            return occasion
    return None


def parse_facets(query: str, vocabulary: Optional[FacetVocabulary] = None) -> FacetSet:
    """
    Extract facets from a free-text query.

    Colors come from the fixed canonical color list (the last listed color
    found wins; "grey" reads as "gray"). Category, brand, material, occasion,
    age group and size come from the vocabulary, first match per facet. An
    occasion keyword ("office", "wedding") fills the occasion facet when no
    occasion value is named directly.
    Price constraints follow the priority between > under > over > a bare
    currency amount (exact price).

    Args:
        query: Free-text query
        vocabulary: Known facet values (vocabulary facets are skipped when None)

    Returns:
        FacetSet with only the recognized facets set
    """
    q = normalize_text(query)
    facets: Dict[str, Any] = {}

    for color in COLORS:
        if re.search(rf"\b{color}\b", q):
            facets["color"] = color
    if re.search(r"\bgrey\b", q):
        facets["color"] = "gray"

    if vocabulary is not None:
        for key, values in (
            ("category", vocabulary.categories),
            ("brand", vocabulary.brands),
            ("material", vocabulary.materials),
            ("occasion", vocabulary.occasions),
            ("age_group", vocabulary.age_groups),
        ):
            match = _first_match(q, values)
            if match is not None:
                facets[key] = match

        if "occasion" not in facets:
            occasion = infer_occasion(q, vocabulary.occasions)
            if occasion is not None:
                facets["occasion"] = occasion

        # Sizes are short tokens (s, m, 8uk); don't match inside "h&m" or "men's"
        size = _first_match(q, vocabulary.sizes, guard=r"[\w&'-]")
        if size is not None:
            facets["size"] = size

    facets.update(_parse_price(q))

    result = FacetSet(**facets)
    logger.debug(f"Parsed facets for '{query}': {result.present()}")
    return result


def _disagrees(item_value: Optional[str], facet_value: Optional[str]) -> bool:
    """A present facet excludes only when the item value is present and different."""
    if facet_value is None or item_value is None:
        return False
    return str(item_value).lower() != facet_value


def matches_facets(item: Item, facets: FacetSet) -> bool:
    """Whether an item is compatible with every present facet."""
    for key in ("category", "brand", "color", "material", "occasion", "age_group", "size"):
        if _disagrees(getattr(item, key), getattr(facets, key)):
            return False

    if facets.has_price and item.price is not None:
        if facets.price_min is not None and item.price < facets.price_min:
            return False
        if facets.price_max is not None and item.price > facets.price_max:
            return False

    return True


def filter_by_facets(items: Sequence[Item], facets: FacetSet) -> List[Item]:
    """
    Drop items that contradict a present facet.

    Missing item fields never exclude; price ranges are inclusive. Order is
    preserved, so filtering twice with the same facets is a no-op.
    """
    if facets.is_empty:
        return list(items)

    filtered = [item for item in items if matches_facets(item, facets)]
    logger.debug(f"Facet filter kept {len(filtered)}/{len(items)} items")
    return filtered
