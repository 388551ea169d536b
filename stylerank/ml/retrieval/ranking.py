"""
Recommendation Scoring
Multi-factor compatibility between a base item and candidates.

Scoring Formula:
score = clamp(Σ weight[f] × similarity[f] + Σ adjustments, 0, 1)
over f in semantic, category, brand, color, material, occasion, price, age_group, size
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, model_validator

from ...models.product import Item
from ..config import RecommendConfig, get_ml_config
from ..errors import InvalidWeights
from ..text.taxonomy import OUTFIT_COMPATIBILITY
from .diversity import DiversityController
from .similarity import (
    age_group_similarity,
    brand_similarity,
    category_group,
    category_similarity,
    color_similarity,
    cosine_similarity,
    material_similarity,
    occasion_similarity,
    price_similarity,
    size_similarity,
)

logger = logging.getLogger(__name__)

FACTORS = (
    "semantic",
    "category",
    "brand",
    "color",
    "material",
    "occasion",
    "price",
    "age_group",
    "size",
)

DEFAULT_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "semantic": 0.25,
        "category": 0.15,
        "brand": 0.12,
        "color": 0.12,
        "material": 0.10,
        "occasion": 0.10,
        "price": 0.08,
        "age_group": 0.05,
        "size": 0.03,
    }
)


class Purpose(str, Enum):
    """Why recommendations are requested; selects a weight profile."""

    SIMILAR = "similar"
    OUTFIT = "outfit"
    OCCASION = "occasion"
    BRAND = "brand"
    BUDGET = "budget"


# Weights each purpose sets on top of the base weights
PURPOSE_PROFILES: Mapping[Purpose, Mapping[str, float]] = MappingProxyType(
    {
        Purpose.SIMILAR: {"semantic": 0.35, "category": 0.25, "brand": 0.15},
        # Category nearly zeroed to encourage cross-category pairing
        Purpose.OUTFIT: {"color": 0.20, "category": 0.05, "occasion": 0.15, "material": 0.15},
        Purpose.OCCASION: {"occasion": 0.30, "material": 0.20, "category": 0.10},
        Purpose.BRAND: {"brand": 0.40, "semantic": 0.20},
        Purpose.BUDGET: {"price": 0.25, "semantic": 0.20},
    }
)


def validate_weights(weights: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """
    Validate caller-supplied factor weights.

    Args:
        weights: Partial mapping of factor -> weight

    Returns:
        Validated copy as floats

    Raises:
        InvalidWeights: For unknown factors or non-finite values
    """
    if not weights:
        return {}

    unknown = sorted(set(weights) - set(FACTORS))
    if unknown:
        raise InvalidWeights(
            f"Unknown weight factors: {', '.join(unknown)}",
            details={"unknown": unknown, "allowed": list(FACTORS)},
        )

    validated = {}
    for name, value in weights.items():
        try:
            number = float(value)
        except (TypeError, ValueError):
            number = math.nan
        if not math.isfinite(number):
            raise InvalidWeights(
                f"Weight '{name}' must be a finite number, got {value!r}",
                details={"factor": name, "value": repr(value)},
            )
        validated[name] = number
    return validated


def contextual_weights(
    purpose: Purpose = Purpose.SIMILAR, base_weights: Optional[Mapping[str, Any]] = None
) -> Dict[str, float]:
    """
    Weight vector for a purpose.

    Args:
        purpose: Recommendation purpose
        base_weights: Caller overrides merged onto the defaults before the
            purpose profile is applied

    Returns:
        New dict; the shared defaults are never modified
    """
    weights = dict(DEFAULT_WEIGHTS)
    weights.update(validate_weights(base_weights))
    weights.update(PURPOSE_PROFILES[Purpose(purpose)])
    return weights


class PriceRange(BaseModel):
    """Inclusive budget range."""

    model_config = ConfigDict(frozen=True)

    min: float = 0.0
    max: float = math.inf

    @model_validator(mode="after")
    def check_order(self):
        if self.min > self.max:
            raise ValueError(f"Budget min ({self.min}) exceeds max ({self.max})")
        return self

    def contains(self, price: Optional[float]) -> bool:
        if price is None:
            return False
        return self.min <= price <= self.max


class RecommendationContext(BaseModel):
    """Optional request context: target occasion and budget."""

    model_config = ConfigDict(frozen=True)

    occasion: Optional[str] = None
    budget: Optional[PriceRange] = None


@dataclass
class ScoreBreakdown:
    """
    Transparent record of one candidate's score.

    total == clamp(Σ weights[f] × components[f] + Σ adjustments, 0, 1)
    """

    components: Dict[str, float]
    weights: Dict[str, float]
    adjustments: Dict[str, float]
    raw_total: float
    total: float

    @property
    def weighted_sum(self) -> float:
        return sum(self.weights.get(f, 0.0) * s for f, s in self.components.items())

    @property
    def adjustment_total(self) -> float:
        return sum(self.adjustments.values())

    def reconstruct(self) -> float:
        """Recompute the capped total from components, weights and adjustments."""
        return min(1.0, max(0.0, self.weighted_sum + self.adjustment_total))

    def explain(self) -> str:
        """
        Generate human-readable explanation of the score.

        Returns:
            Explanation string
        """
        explanation = f"Total Score: {self.total:.4f} (raw {self.raw_total:.4f})\n"
        explanation += "  Components:\n"
        for factor, score in self.components.items():
            weight = self.weights.get(factor, 0.0)
            explanation += f"    {factor:<10} {score:.4f} × {weight:.2f} = {score * weight:.4f}\n"
        active = {k: v for k, v in self.adjustments.items() if v}
        if active:
            explanation += "  Adjustments:\n"
            for name, value in active.items():
                explanation += f"    {name:<20} {value:+.2f}\n"
        return explanation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "components": dict(self.components),
            "weights": dict(self.weights),
            "adjustments": dict(self.adjustments),
            "raw_total": self.raw_total,
            "total": self.total,
        }


class RecommendationScorer:
    """
    Computes weighted multi-factor scores between a base item and candidates.

    Material similarity is judged in the context occasion (else the base
    item's occasion); size similarity uses the candidate's category.
    """

    def __init__(self, config: Optional[RecommendConfig] = None):
        self.config = config or get_ml_config().recommend

    def components(
        self, base: Item, candidate: Item, context: Optional[RecommendationContext] = None
    ) -> Dict[str, float]:
        occasion = (context.occasion if context else None) or base.occasion
        return {
            "semantic": cosine_similarity(base.embedding, candidate.embedding),
            "category": category_similarity(base.category, candidate.category),
            "brand": brand_similarity(base.brand, candidate.brand),
            "color": color_similarity(base.color, candidate.color),
            "material": material_similarity(base.material, candidate.material, occasion),
            "occasion": occasion_similarity(base.occasion, candidate.occasion),
            "price": price_similarity(base.price, candidate.price),
            "age_group": age_group_similarity(base.age_group, candidate.age_group),
            "size": size_similarity(base.size, candidate.size, candidate.category),
        }

    def adjustments(
        self, base: Item, candidate: Item, context: Optional[RecommendationContext] = None
    ) -> Dict[str, float]:
        """Bounded business adjustments applied after the weighted sum."""
        cfg = self.config
        adjustments = {
            "stock_boost": 0.0,
            "budget_boost": 0.0,
            "cross_category_bonus": 0.0,
            "duplicate_penalty": 0.0,
        }

        if candidate.in_stock:
            adjustments["stock_boost"] = cfg.in_stock_boost

        if context and context.budget and context.budget.contains(candidate.price):
            adjustments["budget_boost"] = cfg.budget_boost

        if base.category != candidate.category:
            base_group = category_group(base.category)
            cand_group = category_group(candidate.category)
            if base_group and cand_group and cand_group in OUTFIT_COMPATIBILITY.get(base_group, []):
                adjustments["cross_category_bonus"] = cfg.cross_category_bonus

        # Near-duplicates (same category, brand and color) are nudged down
        if (
            base.category
            and base.brand
            and base.color
            and (base.category, base.brand, base.color)
            == (candidate.category, candidate.brand, candidate.color)
        ):
            adjustments["duplicate_penalty"] = cfg.duplicate_penalty

        return adjustments

    def score(
        self,
        base: Item,
        candidate: Item,
        weights: Optional[Mapping[str, float]] = None,
        context: Optional[RecommendationContext] = None,
    ) -> ScoreBreakdown:
        """
        Score one candidate against the base item.

        Args:
            base: Base item
            candidate: Candidate item
            weights: Full weight vector (default: DEFAULT_WEIGHTS)
            context: Optional occasion/budget context

        Returns:
            ScoreBreakdown with total clamped to [0, 1]
        """
        weights = dict(weights or DEFAULT_WEIGHTS)
        components = self.components(base, candidate, context)
        adjustments = self.adjustments(base, candidate, context)

        raw_total = sum(weights.get(f, 0.0) * s for f, s in components.items()) + sum(
            adjustments.values()
        )
        total = min(1.0, max(0.0, raw_total))

        return ScoreBreakdown(
            components=components,
            weights=weights,
            adjustments=adjustments,
            raw_total=raw_total,
            total=total,
        )


@dataclass
class Recommendation:
    """A scored candidate."""

    item: Item
    score: float
    breakdown: Optional[ScoreBreakdown] = None
    rank: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self, include_scoring: bool = False) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        data = self.item.to_dict()
        data["score"] = self.score
        data["rank"] = self.rank
        data.update(self.metadata)
        if include_scoring and self.breakdown is not None:
            data["scoring_breakdown"] = self.breakdown.to_dict()
        return data


@dataclass
class RankOptions:
    """Options for rank_products()."""

    top_k: Optional[int] = None
    purpose: Purpose = Purpose.SIMILAR
    context: Optional[RecommendationContext] = None
    min_score: Optional[float] = None
    max_same_category: Optional[int] = None
    diversity_threshold: Optional[float] = None
    weights: Optional[Dict[str, float]] = None


def rank_products(
    base: Item,
    candidates: Sequence[Item],
    options: Optional[RankOptions] = None,
    scorer: Optional[RecommendationScorer] = None,
    diversity: Optional[DiversityController] = None,
) -> List[Recommendation]:
    """
    Score, filter, sort and diversify candidates for a base item.

    Args:
        base: Base item (excluded from the candidates)
        candidates: Candidate items
        options: Ranking options (defaults from RecommendConfig)
        scorer: Scorer to use
        diversity: Diversity controller to use

    Returns:
        At most top_k recommendations, best first

    Raises:
        InvalidWeights: If options.weights is invalid
    """
    options = options or RankOptions()
    scorer = scorer or RecommendationScorer()
    diversity = diversity or DiversityController(scorer.config)
    cfg = scorer.config

    top_k = options.top_k if options.top_k is not None else cfg.default_top_k
    min_score = options.min_score if options.min_score is not None else cfg.min_score
    weights = contextual_weights(options.purpose, options.weights)

    scored: List[Recommendation] = []
    for candidate in candidates:
        if candidate.id == base.id:
            continue
        breakdown = scorer.score(base, candidate, weights, options.context)
        if breakdown.total >= min_score:
            scored.append(Recommendation(item=candidate, score=breakdown.total, breakdown=breakdown))

    # Stable: equal scores keep catalog order
    scored.sort(key=lambda r: r.score, reverse=True)

    results = diversity.apply(
        scored,
        top_k,
        base_category=base.category,
        max_same_category=options.max_same_category,
        diversity_threshold=options.diversity_threshold,
    )
    for rank, recommendation in enumerate(results):
        recommendation.rank = rank

    logger.debug(
        f"Ranked {len(scored)} candidates for item {base.id} "
        f"(purpose={Purpose(options.purpose).value}), returning {len(results)}"
    )
    return results
