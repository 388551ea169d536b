"""
Heuristic Tiering
Rule-based, explainable recommendation tiers for a base item.

Tier Formula:
score = min(1, α × semantic + β × category + γ × color + δ × brand)
with per-tier weights (α, β, γ, δ).
"""

import logging
import math
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from ...models.product import Item
from ..config import HeuristicConfig, get_ml_config
from ..errors import InvalidWeights, ItemNotFound
from ..text.taxonomy import STYLE_EXPANSION
from .similarity import (
    brand_similarity,
    category_similarity,
    color_similarity,
    cosine_similarity,
    share_category_group,
)

logger = logging.getLogger(__name__)

TierKey = Union[int, str]


class Tier(IntEnum):
    """Recommendation tiers, evaluated in priority order 1, 2, 3, then fallback."""

    FALLBACK = 0
    EXACT_INTENT = 1
    CLOSE_SUBSTITUTE = 2
    BROAD_EXPLORATION = 3

    @property
    def display_name(self) -> str:
        return _TIER_NAMES[self]

    @property
    def key(self) -> str:
        """Transport key: set1..set3, or other for the fallback tier."""
        return f"set{self.value}" if self else "other"

    @classmethod
    def lookup(cls, key: TierKey) -> Optional["Tier"]:
        """Scored tier for a key: 1-3, "1"-"3" or "set1"-"set3"; None otherwise."""
        text = str(key).strip().lower()
        if text.startswith("set"):
            text = text[3:]
        if text in ("1", "2", "3"):
            return cls(int(text))
        return None

    @classmethod
    def parse(cls, key: TierKey) -> "Tier":
        """
        Parse a scored tier key for weight overrides.

        Raises:
            InvalidWeights: For anything but 1-3 or set1-set3
        """
        tier = cls.lookup(key)
        if tier is not None:
            return tier
        raise InvalidWeights(
            f"Unknown tier key: {key!r}",
            details={"tier": str(key), "allowed": ["1", "2", "3", "set1", "set2", "set3"]},
        )


_TIER_NAMES = {
    Tier.EXACT_INTENT: "Exact Intent Match",
    Tier.CLOSE_SUBSTITUTE: "Close Substitutes",
    Tier.BROAD_EXPLORATION: "Broader Exploration",
    Tier.FALLBACK: "Semantic Fallback",
}

SCORED_TIERS = (Tier.EXACT_INTENT, Tier.CLOSE_SUBSTITUTE, Tier.BROAD_EXPLORATION)


class TierWeights(BaseModel):
    """α semantic, β category, γ color, δ brand."""

    model_config = ConfigDict(frozen=True, extra="forbid", allow_inf_nan=False)

    alpha: float
    beta: float
    gamma: float
    delta: float


DEFAULT_TIER_WEIGHTS: Mapping[Tier, TierWeights] = MappingProxyType(
    {
        Tier.EXACT_INTENT: TierWeights(alpha=0.4, beta=0.3, gamma=0.2, delta=0.1),
        Tier.CLOSE_SUBSTITUTE: TierWeights(alpha=0.5, beta=0.25, gamma=0.1, delta=0.15),
        Tier.BROAD_EXPLORATION: TierWeights(alpha=0.6, beta=0.1, gamma=0.05, delta=0.25),
    }
)


@dataclass(frozen=True)
class TierWeightOverrides:
    """
    Caller-supplied tier weights for a single call.

    Every supplied tier must carry all of alpha, beta, gamma and delta as
    finite numbers. Overrides are threaded explicitly through scoring; the
    shared defaults are never modified.
    """

    weights: Mapping[Tier, TierWeights] = field(default_factory=dict)

    @classmethod
    def parse(cls, raw: Optional[Mapping[TierKey, Any]]) -> "TierWeightOverrides":
        """
        Validate a raw mapping such as {"set1": {"alpha": 0.5, ...}}.

        Raises:
            InvalidWeights: For unknown tiers, missing keys or non-finite values
        """
        if not raw:
            return cls()

        parsed: Dict[Tier, TierWeights] = {}
        for key, value in raw.items():
            tier = Tier.parse(key)
            if isinstance(value, TierWeights):
                parsed[tier] = value
                continue
            if not isinstance(value, Mapping):
                raise InvalidWeights(
                    f"Weights for {tier.key} must be a mapping",
                    details={"tier": tier.key},
                )
            try:
                parsed[tier] = TierWeights(**value)
            except (ValidationError, TypeError) as e:
                raise InvalidWeights(
                    f"Invalid weights for {tier.key}: requires finite alpha, beta, gamma, delta",
                    details={"tier": tier.key, "supplied": {k: repr(v) for k, v in value.items()}},
                ) from e

        return cls(weights=parsed)

    def resolve(self) -> Dict[Tier, TierWeights]:
        """Effective weights: defaults with these overrides on top."""
        resolved = dict(DEFAULT_TIER_WEIGHTS)
        resolved.update(self.weights)
        return resolved


@dataclass
class TierScoreBreakdown:
    """Four-factor score record; weights is None for the semantic-only fallback."""

    semantic: float
    category: float = 0.0
    color: float = 0.0
    brand: float = 0.0
    weights: Optional[TierWeights] = None
    raw_total: float = 0.0
    total: float = 0.0

    def reconstruct(self) -> float:
        """Recompute the total from components and weights."""
        if self.weights is None:
            return self.semantic
        w = self.weights
        return min(
            1.0,
            w.alpha * self.semantic + w.beta * self.category + w.gamma * self.color + w.delta * self.brand,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "components": {
                "semantic": self.semantic,
                "category": self.category,
                "color": self.color,
                "brand": self.brand,
            },
            "weights": self.weights.model_dump() if self.weights else None,
            "raw_total": self.raw_total,
            "total": self.total,
        }


@dataclass
class TieredRecommendation:
    """A candidate assigned to a tier."""

    item: Item
    tier: Tier
    score: float
    breakdown: TierScoreBreakdown
    rank: int = 0

    def to_dict(self, include_scoring: bool = True) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        data = self.item.to_dict()
        data.update(
            {
                "score": self.score,
                "rank": self.rank,
                "set": int(self.tier),
                "set_name": self.tier.display_name,
            }
        )
        if include_scoring:
            data["scoring_details"] = {**self.breakdown.to_dict(), "method": "heuristic"}
        return data


@dataclass
class HeuristicResult:
    """Tiered recommendations plus distribution metadata."""

    results: List[TieredRecommendation]
    base_item: Dict[str, Any]
    distribution: Dict[str, int]
    total_candidates: int
    weights: Dict[str, Dict[str, float]]
    tier_counts: Dict[str, int]

    def to_dict(self, include_scoring: bool = True) -> Dict[str, Any]:
        return {
            "results": [r.to_dict(include_scoring) for r in self.results],
            "metadata": {
                "base_item": self.base_item,
                "distribution": dict(self.distribution),
                "total_candidates": self.total_candidates,
                "weights": self.weights,
                "tier_counts": dict(self.tier_counts),
            },
        }


@dataclass
class SetAnalysis:
    """Raw tier membership for a base item, without scoring."""

    base_item: Dict[str, Any]
    counts: Dict[str, int]
    details: Dict[str, List[Dict[str, Any]]]

    def to_dict(self) -> Dict[str, Any]:
        return {"base_item": self.base_item, "counts": dict(self.counts), "details": self.details}


def _same(a: Optional[str], b: Optional[str]) -> bool:
    """Equality where a missing value never matches."""
    return bool(a) and bool(b) and a.lower() == b.lower()


def _style_buckets(occasion: Optional[str]) -> set:
    if not occasion:
        return set()
    occasion = occasion.lower()
    return {
        bucket
        for bucket, keywords in STYLE_EXPANSION.items()
        if any(keyword in occasion for keyword in keywords)
    }


def find_item(items: Sequence[Item], item_id) -> Item:
    """
    Look up an item by id.

    Raises:
        ItemNotFound: If no item has this id
    """
    for item in items:
        if item.id == item_id:
            return item
    raise ItemNotFound(item_id)


class HeuristicTieringEngine:
    """
    Classifies candidates into tiers and scores each tier with its own weights.

    Tier 1 (exact intent): same category and (similar color or same brand).
    Tier 2 (close substitute): categories share a category group.
    Tier 3 (broad exploration): occasions share a style bucket, or same brand.
    Fallback: everything else, kept when semantic similarity >= min_score.
    """

    def __init__(self, config: Optional[HeuristicConfig] = None):
        self.config = config or get_ml_config().heuristic

    # === CLASSIFICATION ===

    def is_exact_intent(self, base: Item, candidate: Item) -> bool:
        if not _same(base.category, candidate.category):
            return False
        similar_color = color_similarity(base.color, candidate.color) > self.config.tier1_color_threshold
        return similar_color or _same(base.brand, candidate.brand)

    def is_close_substitute(self, base: Item, candidate: Item) -> bool:
        return share_category_group(base.category, candidate.category)

    def is_broad_exploration(self, base: Item, candidate: Item) -> bool:
        if _style_buckets(base.occasion) & _style_buckets(candidate.occasion):
            return True
        return _same(base.brand, candidate.brand)

    def classify(self, base: Item, candidate: Item) -> Tier:
        """Assign exactly one tier, checking predicates in priority order."""
        if self.is_exact_intent(base, candidate):
            return Tier.EXACT_INTENT
        if self.is_close_substitute(base, candidate):
            return Tier.CLOSE_SUBSTITUTE
        if self.is_broad_exploration(base, candidate):
            return Tier.BROAD_EXPLORATION
        return Tier.FALLBACK

    # === SCORING ===

    def score(
        self,
        base: Item,
        candidate: Item,
        weights: TierWeights,
        semantic: float,
        explain: bool = False,
    ) -> TierScoreBreakdown:
        """
        Score a candidate with one tier's weights.

        Args:
            base: Base item
            candidate: Candidate item
            weights: Tier weights
            semantic: Precomputed semantic similarity
            explain: Log the score arithmetic at DEBUG level

        Returns:
            TierScoreBreakdown with total capped at 1.0
        """
        category = category_similarity(base.category, candidate.category)
        color = color_similarity(base.color, candidate.color)
        brand = brand_similarity(base.brand, candidate.brand)

        raw_total = (
            weights.alpha * semantic
            + weights.beta * category
            + weights.gamma * color
            + weights.delta * brand
        )
        breakdown = TierScoreBreakdown(
            semantic=semantic,
            category=category,
            color=color,
            brand=brand,
            weights=weights,
            raw_total=raw_total,
            total=min(1.0, raw_total),
        )

        if explain:
            logger.debug(
                f"Score for {candidate.name} (id={candidate.id}): "
                f"{weights.alpha}×{semantic:.4f} + {weights.beta}×{category:.4f} + "
                f"{weights.gamma}×{color:.4f} + {weights.delta}×{brand:.4f} "
                f"= {raw_total:.4f} (capped {breakdown.total:.4f})"
            )
        return breakdown

    def _tier_counts(
        self, top_k: int, tier_counts: Optional[Mapping[TierKey, int]]
    ) -> Dict[Tier, int]:
        cfg = self.config
        counts = {
            Tier.EXACT_INTENT: math.ceil(cfg.tier1_share * top_k),
            Tier.CLOSE_SUBSTITUTE: math.ceil(cfg.tier2_share * top_k),
            Tier.BROAD_EXPLORATION: math.ceil(cfg.tier3_share * top_k),
        }
        for key, count in (tier_counts or {}).items():
            tier = Tier.lookup(key)
            if tier is None:
                raise ValueError(f"Unknown tier in tier_counts: {key!r} (use 1-3 or set1-set3)")
            try:
                slots = int(count)
            except (TypeError, ValueError, OverflowError) as e:
                raise ValueError(f"Slot count for {tier.key} must be a whole number, got {count!r}") from e
            counts[tier] = max(0, slots)
        return counts

    def recommend(
        self,
        items: Sequence[Item],
        base_id,
        top_k: Optional[int] = None,
        tier_counts: Optional[Mapping[TierKey, int]] = None,
        custom_weights: Optional[Union[TierWeightOverrides, Mapping[TierKey, Any]]] = None,
        min_score: Optional[float] = None,
        explain: bool = False,
    ) -> HeuristicResult:
        """
        Tiered recommendations for a base item.

        Args:
            items: Catalog items (with embeddings)
            base_id: Base item id
            top_k: Number of results (default: config.default_top_k)
            tier_counts: Slots per tier, keyed 1-3 or set1-set3
                (default: ceil(50% / 30% / 20% of top_k))
            custom_weights: Per-call tier weight overrides
            min_score: Minimum score within any tier
            explain: Log per-candidate score arithmetic at DEBUG level

        Returns:
            HeuristicResult

        Raises:
            ItemNotFound: If base_id is not in items
            InvalidWeights: If custom_weights is invalid
            ValueError: If tier_counts has an unknown tier or a non-numeric count
        """
        overrides = (
            custom_weights
            if isinstance(custom_weights, TierWeightOverrides)
            else TierWeightOverrides.parse(custom_weights)
        )
        weights = overrides.resolve()

        base = find_item(items, base_id)
        cfg = self.config
        top_k = top_k if top_k is not None else cfg.default_top_k
        min_score = min_score if min_score is not None else cfg.min_score
        counts = self._tier_counts(top_k, tier_counts)

        buckets: Dict[Tier, List[TieredRecommendation]] = {tier: [] for tier in Tier}
        total_candidates = 0

        for candidate in items:
            if candidate.id == base.id:
                continue
            total_candidates += 1

            semantic = cosine_similarity(base.embedding, candidate.embedding)
            tier = self.classify(base, candidate)

            if tier == Tier.FALLBACK:
                breakdown = TierScoreBreakdown(semantic=semantic, raw_total=semantic, total=semantic)
            else:
                breakdown = self.score(base, candidate, weights[tier], semantic, explain)

            if breakdown.total < min_score:
                continue

            if explain:
                logger.debug(f"  {candidate.name} (id={candidate.id}) -> {tier.display_name}")

            buckets[tier].append(
                TieredRecommendation(item=candidate, tier=tier, score=breakdown.total, breakdown=breakdown)
            )

        for bucket in buckets.values():
            bucket.sort(key=lambda r: r.score, reverse=True)

        final: List[TieredRecommendation] = []
        for tier in SCORED_TIERS:
            final.extend(buckets[tier][: counts[tier]])

        remaining = top_k - len(final)
        if remaining > 0:
            final.extend(buckets[Tier.FALLBACK][:remaining])

        final.sort(key=lambda r: r.score, reverse=True)
        final = final[: max(0, top_k)]
        for rank, recommendation in enumerate(final):
            recommendation.rank = rank

        # Tier quotas are rounded up, so count what survived the top_k cut
        distribution = {tier.key: 0 for tier in (*SCORED_TIERS, Tier.FALLBACK)}
        for recommendation in final:
            distribution[recommendation.tier.key] += 1

        logger.info(
            f"Heuristic recommendations for item {base.id}: {len(final)} results, "
            f"distribution={distribution}"
        )

        return HeuristicResult(
            results=final,
            base_item=base.summary(),
            distribution=distribution,
            total_candidates=total_candidates,
            weights={tier.key: w.model_dump() for tier, w in sorted(weights.items())},
            tier_counts={tier.key: count for tier, count in sorted(counts.items())},
        )

    def analyze_sets(self, items: Sequence[Item], base_id) -> SetAnalysis:
        """
        Tier membership counts and details for a base item, without scoring.

        Raises:
            ItemNotFound: If base_id is not in items
        """
        base = find_item(items, base_id)
        details: Dict[str, List[Dict[str, Any]]] = {tier.key: [] for tier in (*SCORED_TIERS, Tier.FALLBACK)}

        for candidate in items:
            if candidate.id == base.id:
                continue
            tier = self.classify(base, candidate)
            details[tier.key].append(
                {"id": candidate.id, "name": candidate.name, "category": candidate.category}
            )

        return SetAnalysis(
            base_item=base.summary(),
            counts={key: len(members) for key, members in details.items()},
            details=details,
        )
