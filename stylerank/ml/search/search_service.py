"""
Search Service
Caller-facing search and recommendation operations over a catalog.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config import MLConfig, get_ml_config
from ..errors import InvalidWeights
from ..retrieval.diversity import DiversityController
from ..retrieval.facets import parse_facets
from ..retrieval.heuristic import HeuristicResult, HeuristicTieringEngine, SetAnalysis, TierKey
from ..retrieval.hybrid_search import HybridSearch, SearchHit, SearchOptions
from ..retrieval.ranking import (
    PriceRange,
    Purpose,
    RankOptions,
    Recommendation,
    RecommendationContext,
    RecommendationScorer,
    rank_products,
)
from ..retrieval.similarity import cosine_similarity
from .catalog import Catalog, CatalogSnapshot

logger = logging.getLogger(__name__)

# Accepted keys for search fusion weights
_SEARCH_WEIGHT_KEYS = {
    "semantic": "semantic_weight",
    "semantic_weight": "semantic_weight",
    "lexical": "lexical_weight",
    "lexical_weight": "lexical_weight",
}


class RecommendAlgorithm(str, Enum):
    """Recommendation algorithms available through recommend_master()."""

    ADVANCED = "advanced"  # Multi-factor scoring with diversity
    HEURISTIC = "heuristic"  # Rule-based tiers
    LEGACY = "legacy"  # Cosine similarity only


@dataclass
class SearchResponse:
    """Search response with results and metadata."""

    results: List[SearchHit]
    query: str
    top_k: int
    method: str
    facets: Dict[str, Any] = field(default_factory=dict)
    search_time_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "results": [hit.to_dict() for hit in self.results],
            "query": self.query,
            "top_k": self.top_k,
            "method": self.method,
            "facets": self.facets,
            "search_time_ms": self.search_time_ms,
        }


@dataclass
class RecommendResponse:
    """Recommendation response with results and metadata."""

    results: List[Recommendation]
    base_item_id: Any
    algorithm: RecommendAlgorithm
    purpose: Optional[Purpose] = None
    context: Optional[RecommendationContext] = None
    include_scoring: bool = False
    total_candidates: int = 0
    total_time_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "results": [r.to_dict(self.include_scoring) for r in self.results],
            "metadata": {
                "base_item_id": self.base_item_id,
                "algorithm": self.algorithm.value,
                "purpose": self.purpose.value if self.purpose else None,
                "context": self.context.model_dump() if self.context else {},
                "total_candidates": self.total_candidates,
                "returned": len(self.results),
                "total_time_ms": self.total_time_ms,
            },
        }


@dataclass
class HeuristicResponse:
    """Heuristic (tiered) recommendation response."""

    result: HeuristicResult
    include_scoring: bool = True
    custom_weights: bool = False
    total_time_ms: float = 0.0

    @property
    def results(self):
        return self.result.results

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        data = self.result.to_dict(self.include_scoring)
        data["metadata"]["algorithm"] = RecommendAlgorithm.HEURISTIC.value
        data["metadata"]["custom_weights"] = self.custom_weights
        data["metadata"]["total_time_ms"] = self.total_time_ms
        return data


class SearchService:
    """
    Unified search service.

    Routes caller operations to the hybrid search engine, the recommendation
    scorer and the heuristic tiering engine. Each call reads the catalog's
    current snapshot once, so a concurrent rebuild never mixes two catalogs
    within one call.
    """

    def __init__(self, catalog: Catalog, config: Optional[MLConfig] = None):
        """
        Initialize search service.

        Args:
            catalog: Built (or soon to be built) catalog
            config: ML configuration (default: the catalog's)
        """
        self.catalog = catalog
        self.config = config or catalog.config or get_ml_config()

        self.scorer = RecommendationScorer(self.config.recommend)
        self.diversity = DiversityController(self.config.recommend)
        self.heuristic = HeuristicTieringEngine(self.config.heuristic)

        logger.info("Search service initialized")

    def _engine(self, snapshot: CatalogSnapshot) -> HybridSearch:
        return HybridSearch(
            provider=self.catalog.provider,
            index=snapshot.index,
            vocabulary=snapshot.vocabulary,
            median_price=snapshot.median_price,
            config=self.config.search,
        )

    # ========== Search ==========

    def search(
        self,
        query: str,
        top_k: Optional[int] = None,
        hybrid: bool = True,
        weights: Optional[Mapping[str, float]] = None,
        facets_enabled: bool = True,
        adaptive: bool = False,
    ) -> SearchResponse:
        """
        Search the catalog.

        Args:
            query: Free-text query
            top_k: Number of results (default: config.search.default_top_k)
            hybrid: Hybrid lexical + semantic ranking; semantic-only when False
            weights: Fusion weights, keys "semantic"/"lexical"
            facets_enabled: Filter by facets parsed from the query
            adaptive: Let short/specific queries take the lexical fast path

        Returns:
            SearchResponse

        Raises:
            InvalidWeights: If weights has unknown keys or non-finite values
            ProviderUnavailable: If the query cannot be embedded
        """
        start_time = time.time()
        snapshot = self.catalog.snapshot

        unknown = sorted(set(weights or {}) - set(_SEARCH_WEIGHT_KEYS))
        if unknown:
            raise InvalidWeights(
                f"Unknown search weights: {', '.join(unknown)}",
                details={"unknown": unknown, "allowed": ["semantic", "lexical"]},
            )
        fusion = {_SEARCH_WEIGHT_KEYS[k]: v for k, v in (weights or {}).items()}

        top_k = top_k if top_k is not None else self.config.search.default_top_k
        options = SearchOptions(top_k=top_k, facets_enabled=facets_enabled, **fusion)
        engine = self._engine(snapshot)

        if not hybrid:
            results = engine.semantic_search(snapshot.items, query, options)
            method = "semantic"
        elif adaptive:
            results = engine.adaptive_search(snapshot.items, query, options)
            method = results[0].method if results else "adaptive"
        else:
            results = engine.search(snapshot.items, query, options)
            method = "hybrid"

        facets = parse_facets(query, snapshot.vocabulary).present() if facets_enabled else {}
        elapsed = (time.time() - start_time) * 1000

        logger.info(f"Search '{query}' ({method}): {len(results)} results in {elapsed:.1f}ms")

        return SearchResponse(
            results=results,
            query=query,
            top_k=top_k,
            method=method,
            facets=facets,
            search_time_ms=elapsed,
        )

    # ========== Recommendations ==========

    def recommend(
        self,
        base_item_id,
        top_k: Optional[int] = None,
        purpose: Union[Purpose, str] = Purpose.SIMILAR,
        context: Optional[Union[RecommendationContext, Mapping[str, Any]]] = None,
        include_scoring: bool = False,
        min_score: Optional[float] = None,
        weights: Optional[Mapping[str, float]] = None,
    ) -> RecommendResponse:
        """
        Multi-factor recommendations for an item.

        Args:
            base_item_id: Base item id
            top_k: Number of results (default: config.recommend.default_top_k)
            purpose: similar, outfit, occasion, brand or budget
            context: Optional occasion and budget
            include_scoring: Include score breakdowns in to_dict()
            min_score: Minimum score (default: config.recommend.min_score)
            weights: Base factor weight overrides

        Returns:
            RecommendResponse

        Raises:
            ItemNotFound: If base_item_id is not in the catalog
            InvalidWeights: If weights is invalid
        """
        start_time = time.time()
        snapshot = self.catalog.snapshot
        base = snapshot.get(base_item_id)

        purpose = Purpose(purpose)
        if context is not None and not isinstance(context, RecommendationContext):
            context = RecommendationContext.model_validate(context)

        options = RankOptions(
            top_k=top_k,
            purpose=purpose,
            context=context,
            min_score=min_score,
            weights=dict(weights) if weights else None,
        )
        results = rank_products(base, snapshot.items, options, self.scorer, self.diversity)

        elapsed = (time.time() - start_time) * 1000
        logger.info(
            f"Recommendations for {base_item_id} (purpose={purpose.value}): "
            f"{len(results)} results in {elapsed:.1f}ms"
        )

        return RecommendResponse(
            results=results,
            base_item_id=base_item_id,
            algorithm=RecommendAlgorithm.ADVANCED,
            purpose=purpose,
            context=context,
            include_scoring=include_scoring,
            total_candidates=len(snapshot) - 1,
            total_time_ms=elapsed,
        )

    def recommend_outfit(self, base_item_id, **kwargs) -> RecommendResponse:
        """Cross-category items that complete an outfit."""
        return self.recommend(base_item_id, purpose=Purpose.OUTFIT, **kwargs)

    def recommend_for_occasion(self, base_item_id, occasion: str, **kwargs) -> RecommendResponse:
        """Items suited to an occasion."""
        context = RecommendationContext(occasion=occasion)
        return self.recommend(base_item_id, purpose=Purpose.OCCASION, context=context, **kwargs)

    def recommend_same_brand(self, base_item_id, **kwargs) -> RecommendResponse:
        """Brand-consistent items."""
        return self.recommend(base_item_id, purpose=Purpose.BRAND, **kwargs)

    def recommend_within_budget(
        self, base_item_id, budget: Union[PriceRange, Mapping[str, float]], **kwargs
    ) -> RecommendResponse:
        """Items close in price, favouring those inside the budget."""
        if not isinstance(budget, PriceRange):
            budget = PriceRange.model_validate(budget)
        context = RecommendationContext(budget=budget)
        return self.recommend(base_item_id, purpose=Purpose.BUDGET, context=context, **kwargs)

    def recommend_similar_legacy(self, base_item_id, top_k: Optional[int] = None) -> RecommendResponse:
        """
        Cosine-similarity-only recommendations.

        Raises:
            ItemNotFound: If base_item_id is not in the catalog
        """
        start_time = time.time()
        snapshot = self.catalog.snapshot
        base = snapshot.get(base_item_id)
        top_k = top_k if top_k is not None else self.config.recommend.default_top_k

        scored = [
            Recommendation(item=item, score=cosine_similarity(base.embedding, item.embedding))
            for item in snapshot.items
            if item.id != base.id
        ]
        scored.sort(key=lambda r: r.score, reverse=True)
        results = scored[:top_k]
        for rank, recommendation in enumerate(results):
            recommendation.rank = rank

        return RecommendResponse(
            results=results,
            base_item_id=base_item_id,
            algorithm=RecommendAlgorithm.LEGACY,
            total_candidates=len(snapshot) - 1,
            total_time_ms=(time.time() - start_time) * 1000,
        )

    def recommend_heuristic(
        self,
        base_item_id,
        top_k: Optional[int] = None,
        tier_counts: Optional[Mapping[TierKey, int]] = None,
        custom_weights: Optional[Mapping[TierKey, Any]] = None,
        min_score: Optional[float] = None,
        include_scoring: bool = True,
        explain: bool = False,
    ) -> HeuristicResponse:
        """
        Tiered heuristic recommendations.

        Args:
            base_item_id: Base item id
            top_k: Number of results (default: config.heuristic.default_top_k)
            tier_counts: Slots per tier (keys 1-3 or set1-set3)
            custom_weights: Per-call tier weights (keys 1-3 or set1-set3)
            min_score: Minimum score within any tier
            include_scoring: Include score breakdowns in to_dict()
            explain: Log per-candidate score arithmetic at DEBUG level

        Returns:
            HeuristicResponse

        Raises:
            ItemNotFound: If base_item_id is not in the catalog
            InvalidWeights: If custom_weights is invalid
            ValueError: If tier_counts has an unknown tier or a non-numeric count
        """
        start_time = time.time()
        snapshot = self.catalog.snapshot
        snapshot.get(base_item_id)

        result = self.heuristic.recommend(
            snapshot.items,
            base_item_id,
            top_k=top_k,
            tier_counts=tier_counts,
            custom_weights=custom_weights,
            min_score=min_score,
            explain=explain,
        )

        return HeuristicResponse(
            result=result,
            include_scoring=include_scoring,
            custom_weights=bool(custom_weights),
            total_time_ms=(time.time() - start_time) * 1000,
        )

    def recommend_master(
        self,
        base_item_id,
        algorithm: Union[RecommendAlgorithm, str] = RecommendAlgorithm.ADVANCED,
        **options,
    ) -> Union[RecommendResponse, HeuristicResponse]:
        """
        Dispatch to a recommendation algorithm.

        Args:
            base_item_id: Base item id
            algorithm: advanced, heuristic or legacy
            **options: Keyword arguments for the selected algorithm

        Returns:
            The selected algorithm's response
        """
        algorithm = RecommendAlgorithm(algorithm)

        if algorithm == RecommendAlgorithm.HEURISTIC:
            return self.recommend_heuristic(base_item_id, **options)
        if algorithm == RecommendAlgorithm.LEGACY:
            return self.recommend_similar_legacy(base_item_id, top_k=options.get("top_k"))
        return self.recommend(base_item_id, **options)

    def analyze_sets(self, base_item_id) -> SetAnalysis:
        """
        Tier membership for an item, without scoring.

        Raises:
            ItemNotFound: If base_item_id is not in the catalog
        """
        snapshot = self.catalog.snapshot
        return self.heuristic.analyze_sets(snapshot.items, base_item_id)
