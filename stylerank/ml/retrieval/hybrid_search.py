"""
Hybrid Search
Facet filtering, lexical pre-ranking, semantic scoring, score fusion, business
boosts and early termination over an in-memory catalog.

Fusion Formula:
final = semantic_weight × max(0, semantic) + lexical_weight × clamp(lexical / scale, 0, 1) + boosts
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from ...models.product import Item
from ..config import LexicalMethod, SearchConfig, get_ml_config
from ..embeddings.provider import EmbeddingProvider, GuardedEmbeddingProvider, l2_normalize
from ..errors import EmptyCandidatePool, InvalidWeights
from ..text.normalize import tokenize
from .facets import FacetSet, FacetVocabulary, filter_by_facets, parse_facets
from .lexical_index import LexicalIndex
from .similarity import cosine_similarity

logger = logging.getLogger(__name__)


@dataclass
class SearchOptions:
    """
    Per-call search options. None means "use the configured default".

    Raises:
        InvalidWeights: If a fusion weight is not a finite non-negative number
    """

    top_k: Optional[int] = None
    semantic_weight: Optional[float] = None
    lexical_weight: Optional[float] = None
    lexical_method: Optional[Union[LexicalMethod, str]] = None
    facets_enabled: bool = True
    candidate_pool_size: Optional[int] = None
    early_termination: Optional[bool] = None
    min_score_threshold: Optional[float] = None

    def __post_init__(self):
        for name in ("semantic_weight", "lexical_weight"):
            value = getattr(self, name)
            if value is None:
                continue
            try:
                number = float(value)
            except (TypeError, ValueError):
                number = math.nan
            if not math.isfinite(number) or number < 0:
                raise InvalidWeights(
                    f"{name} must be a finite non-negative number, got {value!r}",
                    details={"weight": name, "value": repr(value)},
                )
            setattr(self, name, number)

        if self.lexical_method is not None:
            self.lexical_method = LexicalMethod(self.lexical_method)

        if self.top_k is not None and self.top_k < 0:
            raise ValueError(f"top_k must be >= 0, got {self.top_k}")


@dataclass
class SearchHit:
    """Single search result with its score components."""

    item: Item
    semantic_score: float
    lexical_score: float
    final_score: float  # Boost-inclusive, uncapped
    rank: int = 0
    boosts: Dict[str, float] = field(default_factory=dict)
    method: str = "hybrid"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        data = self.item.to_dict()
        data.update(
            {
                "semantic_score": float(self.semantic_score),
                "lexical_score": float(self.lexical_score),
                "final_score": float(self.final_score),
                "rank": self.rank,
                "boosts": dict(self.boosts),
                "method": self.method,
            }
        )
        return data


def _stable_desc(values: Sequence[float]) -> List[int]:
    """Indices sorted by value descending; ties keep input order."""
    return sorted(range(len(values)), key=lambda i: -values[i])


class HybridSearch:
    """
    Hybrid lexical + semantic search engine over one catalog snapshot.

    The lexical index, facet vocabulary and median price belong to the
    catalog snapshot; the engine only reads them.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        index: LexicalIndex,
        vocabulary: Optional[FacetVocabulary] = None,
        median_price: Optional[float] = None,
        config: Optional[SearchConfig] = None,
    ):
        """
        Initialize hybrid search.

        Args:
            provider: Query embedding provider
            index: Lexical index of the catalog
            vocabulary: Facet vocabulary of the catalog
            median_price: Catalog median price (None disables the price boost)
            config: Search configuration (default: global ML config)
        """
        self.provider = GuardedEmbeddingProvider.wrap(provider)
        self.index = index
        self.vocabulary = vocabulary
        self.median_price = median_price
        self.config = config or get_ml_config().search

    # === HELPERS ===

    @staticmethod
    def _option(value, default):
        return default if value is None else value

    def _filter(self, items: Sequence[Item], query: str, enabled: bool) -> List[Item]:
        """
        Apply parsed facets.

        Raises:
            EmptyCandidatePool: If facets leave no items
        """
        if not enabled:
            return list(items)

        facets: FacetSet = parse_facets(query, self.vocabulary)
        filtered = filter_by_facets(items, facets)
        if not filtered:
            raise EmptyCandidatePool(
                "Facet filtering left no candidates",
                details={"query": query, "facets": facets.present()},
            )
        return filtered

    def _embed_query(self, query: str) -> np.ndarray:
        return l2_normalize(self.provider.embed(query))

    def business_boosts(self, item: Item) -> Dict[str, float]:
        """Additive boosts: in stock, and price within tolerance of the catalog median."""
        cfg = self.config
        boosts: Dict[str, float] = {}

        if item.in_stock:
            boosts["in_stock"] = cfg.in_stock_boost

        median = self.median_price
        if median and item.price is not None:
            if abs(item.price - median) <= cfg.median_price_tolerance * median:
                boosts["median_price"] = cfg.median_price_boost

        return boosts

    def fuse(self, semantic: float, lexical: float, semantic_weight: float, lexical_weight: float) -> float:
        """Weighted fusion of semantic (negatives floored at 0) and scaled lexical scores."""
        lexical_norm = min(1.0, max(0.0, lexical / self.config.lexical_scale))
        return semantic_weight * max(0.0, semantic) + lexical_weight * lexical_norm

    # === SEARCH PATHS ===

    def search(
        self, items: Sequence[Item], query: str, options: Optional[SearchOptions] = None
    ) -> List[SearchHit]:
        """
        Hybrid search.

        Args:
            items: Catalog items (with embeddings)
            query: Free-text query
            options: Search options

        Returns:
            At most top_k hits, best first

        Raises:
            ProviderUnavailable: If the query cannot be embedded
        """
        opts = options or SearchOptions()
        cfg = self.config
        start = time.time()

        top_k = self._option(opts.top_k, cfg.default_top_k)
        semantic_weight = self._option(opts.semantic_weight, cfg.semantic_weight)
        lexical_weight = self._option(opts.lexical_weight, cfg.lexical_weight)
        method = self._option(opts.lexical_method, cfg.lexical_method)
        pool_size = self._option(opts.candidate_pool_size, cfg.candidate_pool_size(top_k))
        early_termination = self._option(opts.early_termination, cfg.early_termination)
        threshold = self._option(opts.min_score_threshold, cfg.min_score_threshold)

        try:
            candidates = self._filter(items, query, opts.facets_enabled)
        except EmptyCandidatePool as e:
            logger.info(f"No candidates for '{query}': {e.details.get('facets')}")
            return []

        # Lexical pre-ranking bounds the semantic scoring cost
        tokens = tokenize(query)
        lexical = self.index.score_items(candidates, tokens, method)
        # Pool members go back to catalog order so score ties rank by catalog position
        order = sorted(_stable_desc(lexical)[:pool_size])
        pool = [candidates[i] for i in order]
        pool_lexical = [lexical[i] for i in order]

        query_vector = self._embed_query(query)

        hits: List[SearchHit] = []
        for item, lexical_score in zip(pool, pool_lexical):
            semantic = cosine_similarity(query_vector, item.embedding)
            boosts = self.business_boosts(item)
            final = self.fuse(semantic, lexical_score, semantic_weight, lexical_weight)
            final += sum(boosts.values())
            hits.append(
                SearchHit(
                    item=item,
                    semantic_score=semantic,
                    lexical_score=lexical_score,
                    final_score=final,
                    boosts=boosts,
                    method="hybrid",
                )
            )

        hits.sort(key=lambda h: h.final_score, reverse=True)

        if early_termination:
            qualified = [h for h in hits if h.final_score >= threshold]
            if len(qualified) >= top_k:
                hits = qualified

        hits = hits[:top_k]
        for rank, hit in enumerate(hits):
            hit.rank = rank

        logger.debug(
            f"Hybrid search '{query}': {len(candidates)} candidates, pool {len(pool)}, "
            f"returned {len(hits)} in {(time.time() - start) * 1000:.1f}ms"
        )
        return hits

    def semantic_search(
        self, items: Sequence[Item], query: str, options: Optional[SearchOptions] = None
    ) -> List[SearchHit]:
        """
        Embedding-only ranking, with optional facet filtering.

        Raises:
            ProviderUnavailable: If the query cannot be embedded
        """
        opts = options or SearchOptions()
        top_k = self._option(opts.top_k, self.config.default_top_k)

        try:
            candidates = self._filter(items, query, opts.facets_enabled)
        except EmptyCandidatePool as e:
            logger.info(f"No candidates for '{query}': {e.details.get('facets')}")
            return []

        query_vector = self._embed_query(query)
        hits = [
            SearchHit(
                item=item,
                semantic_score=(score := cosine_similarity(query_vector, item.embedding)),
                lexical_score=0.0,
                final_score=score,
                method="semantic",
            )
            for item in candidates
        ]
        hits.sort(key=lambda h: h.final_score, reverse=True)

        hits = hits[:top_k]
        for rank, hit in enumerate(hits):
            hit.rank = rank
        return hits

    def lexical_search(
        self, items: Sequence[Item], query: str, options: Optional[SearchOptions] = None
    ) -> List[SearchHit]:
        """
        Lexical-only fast path; never calls the embedding provider.

        The final score is the raw lexical score.
        """
        opts = options or SearchOptions()
        top_k = self._option(opts.top_k, self.config.default_top_k)
        method = self._option(opts.lexical_method, self.config.lexical_method)

        try:
            candidates = self._filter(items, query, opts.facets_enabled)
        except EmptyCandidatePool as e:
            logger.info(f"No candidates for '{query}': {e.details.get('facets')}")
            return []

        scores = self.index.score_items(candidates, tokenize(query), method)
        hits = [
            SearchHit(
                item=candidates[i],
                semantic_score=0.0,
                lexical_score=scores[i],
                final_score=scores[i],
                method="linear_only",
            )
            for i in _stable_desc(scores)[:top_k]
        ]
        for rank, hit in enumerate(hits):
            hit.rank = rank
        return hits

    def prefers_lexical(self, query: str) -> bool:
        """
        Whether a query is short/specific enough for the lexical fast path.

        True for at most two tokens with one of length <= 4, or when a token
        is a known brand or category.
        """
        tokens = tokenize(query)
        specific = 0 < len(tokens) <= 2 and any(len(t) <= 4 for t in tokens)
        vocabulary_hit = self.vocabulary is not None and any(
            self.vocabulary.is_brand_or_category(t) for t in tokens
        )
        return specific or vocabulary_hit

    def adaptive_search(
        self, items: Sequence[Item], query: str, options: Optional[SearchOptions] = None
    ) -> List[SearchHit]:
        """Lexical fast path for short/specific queries, hybrid otherwise."""
        if self.prefers_lexical(query):
            logger.debug(f"Adaptive search: lexical path for '{query}'")
            return self.lexical_search(items, query, options)
        logger.debug(f"Adaptive search: hybrid path for '{query}'")
        return self.search(items, query, options)
