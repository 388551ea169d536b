"""
Retrieval & Ranking Module
Lexical indexing, facet filtering, hybrid search, recommendation scoring,
diversity control and heuristic tiering.
"""

from .lexical_index import DocumentStats, LexicalIndex
from .facets import FacetSet, FacetVocabulary, filter_by_facets, parse_facets
from .hybrid_search import HybridSearch, SearchHit, SearchOptions
from .diversity import DiversityController
from .ranking import (
    DEFAULT_WEIGHTS,
    PriceRange,
    Purpose,
    RankOptions,
    Recommendation,
    RecommendationContext,
    RecommendationScorer,
    ScoreBreakdown,
    contextual_weights,
    rank_products,
)
from .heuristic import (
    DEFAULT_TIER_WEIGHTS,
    HeuristicResult,
    HeuristicTieringEngine,
    SetAnalysis,
    Tier,
    TieredRecommendation,
    TierScoreBreakdown,
    TierWeightOverrides,
    TierWeights,
)

__all__ = [
    "DocumentStats",
    "LexicalIndex",
    "FacetSet",
    "FacetVocabulary",
    "filter_by_facets",
    "parse_facets",
    "HybridSearch",
    "SearchHit",
    "SearchOptions",
    "DiversityController",
    "DEFAULT_WEIGHTS",
    "PriceRange",
    "Purpose",
    "RankOptions",
    "Recommendation",
    "RecommendationContext",
    "RecommendationScorer",
    "ScoreBreakdown",
    "contextual_weights",
    "rank_products",
    "DEFAULT_TIER_WEIGHTS",
    "HeuristicResult",
    "HeuristicTieringEngine",
    "SetAnalysis",
    "Tier",
    "TieredRecommendation",
    "TierScoreBreakdown",
    "TierWeightOverrides",
    "TierWeights",
]
