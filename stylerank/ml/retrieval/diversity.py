"""
Diversity Controller
Caps per-category and per-brand repetition in a ranked recommendation list.
"""

import logging
import math
from collections import Counter
from typing import List, Optional, Protocol, Sequence, TypeVar

from ...models.product import Item
from ..config import RecommendConfig, get_ml_config

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


class Scored(Protocol):
    item: Item
    score: float


S = TypeVar("S", bound=Scored)


class DiversityController:
    """
    Greedy, order-preserving diversification.

    Walks a score-sorted list once and admits an entry unless it would
    exceed the category cap (ceil(ratio * top_k) for the base item's
    category, ceil(multiplier * that) for any other), the per-brand cap, or,
    after the first admitted entry, falls below the diversity threshold.
    Missing categories and brands share the "unknown" bucket.
    """

    def __init__(self, config: Optional[RecommendConfig] = None):
        self.config = config or get_ml_config().recommend

    def category_caps(self, top_k: int, max_same_category: Optional[int] = None):
        """(cap for the base category, cap for every other category)."""
        same = (
            max_same_category
            if max_same_category is not None
            else math.ceil(self.config.same_category_ratio * top_k)
        )
        other = math.ceil(same * self.config.other_category_multiplier)
        return same, other

    def apply(
        self,
        ranked: Sequence[S],
        top_k: int,
        base_category: Optional[str] = None,
        max_same_category: Optional[int] = None,
        diversity_threshold: Optional[float] = None,
    ) -> List[S]:
        """
        Diversify a ranked list.

        Args:
            ranked: Entries sorted by score, descending
            top_k: Number of entries wanted
            base_category: Category of the base item
            max_same_category: Cap for the base category (default: ceil(0.7 * top_k))
            diversity_threshold: Minimum score after the first entry

        Returns:
            At most top_k entries, in input order
        """
        if top_k <= 0:
            return []

        threshold = (
            diversity_threshold
            if diversity_threshold is not None
            else self.config.diversity_threshold
        )
        same_cap, other_cap = self.category_caps(top_k, max_same_category)
        base_key = (base_category or UNKNOWN).lower()

        results: List[S] = []
        category_count: Counter = Counter()
        brand_count: Counter = Counter()

        for entry in ranked:
            category_key = (entry.item.category or UNKNOWN).lower()
            brand_key = (entry.item.brand or UNKNOWN).lower()
            cap = same_cap if category_key == base_key else other_cap

            if category_count[category_key] >= cap:
                continue
            if brand_count[brand_key] >= self.config.max_per_brand:
                continue
            if results and entry.score < threshold:
                continue

            results.append(entry)
            category_count[category_key] += 1
            brand_count[brand_key] += 1

            if len(results) >= top_k:
                break

        logger.debug(
            f"Diversity kept {len(results)}/{len(ranked)} "
            f"(category caps {same_cap}/{other_cap}, brand cap {self.config.max_per_brand})"
        )
        return results
