"""
ML Configuration
Centralized configuration for lexical indexing, hybrid search, recommendation
scoring, heuristic tiering, and embedding caching.
"""

import math
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class LexicalMethod(Enum):
    """Lexical scoring methods available to the hybrid search engine."""

    TFIDF = "tfidf"
    BM25 = "bm25"
    FUZZY = "fuzzy"
    COMBINED = "combined"


@dataclass
class LexicalConfig:
    """Lexical index and scorer parameters."""

    # BM25 free parameters
    bm25_k1: float = 1.2
    bm25_b: float = 0.75

    # Fuzzy matching
    fuzzy_prefix_ratio: float = 0.75  # Share of the token that must appear as a prefix
    fuzzy_min_prefix: int = 3
    fuzzy_prefix_score: float = 0.9
    fuzzy_min_word_length: int = 3  # Document words shorter than this are skipped


@dataclass
class SearchConfig:
    """Hybrid search fusion and early termination configuration."""

    # Fusion weights
    semantic_weight: float = 0.7
    lexical_weight: float = 0.3

    # Lexical scores are divided by this before clamping to [0, 1]
    lexical_scale: float = 10.0
    lexical_method: LexicalMethod = LexicalMethod.COMBINED

    # Candidate pool: max(pool_multiplier * top_k, min_pool_size)
    pool_multiplier: int = 15
    min_pool_size: int = 150

    # Business boosts (additive, applied after fusion)
    in_stock_boost: float = 0.2
    median_price_boost: float = 0.1
    median_price_tolerance: float = 0.1  # 10% of the catalog median

    # Early termination
    early_termination: bool = True
    min_score_threshold: float = 0.1

    default_top_k: int = 5

    def __post_init__(self):
        for name in ("semantic_weight", "lexical_weight", "lexical_scale"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"{name} must be a finite non-negative number, got {value}")
        if self.lexical_scale == 0:
            raise ValueError("lexical_scale must be positive")

    def candidate_pool_size(self, top_k: int) -> int:
        """Default candidate pool size for a given top_k."""
        return max(self.pool_multiplier * top_k, self.min_pool_size)


@dataclass
class RecommendConfig:
    """Multi-factor recommendation scoring configuration."""

    default_top_k: int = 5
    min_score: float = 0.1

    # Diversity controls
    same_category_ratio: float = 0.7  # ceil(ratio * top_k) items from the base category
    other_category_multiplier: float = 1.5
    max_per_brand: int = 2
    diversity_threshold: float = 0.3

    # Business adjustments
    in_stock_boost: float = 0.05
    budget_boost: float = 0.03
    cross_category_bonus: float = 0.04
    duplicate_penalty: float = -0.02


@dataclass
class HeuristicConfig:
    """Tiered heuristic recommendation configuration."""

    default_top_k: int = 12
    min_score: float = 0.1

    # Share of top_k drawn from tiers 1-3 (rounded up)
    tier1_share: float = 0.5
    tier2_share: float = 0.3
    tier3_share: float = 0.2

    # Tier 1 requires color similarity strictly above this value
    tier1_color_threshold: float = 0.6


@dataclass
class CacheConfig:
    """Embedding cache configuration."""

    embedding_batch_size: int = 32
    normalize_embeddings: bool = True  # L2 normalization (required for dot-product similarity)

    # Redis key prefix for persisted corpora
    redis_key_prefix: str = "stylerank:embeddings:"
    redis_ttl_hours: Optional[int] = None  # None = keep until fingerprint changes

    def __post_init__(self):
        if self.embedding_batch_size < 1:
            raise ValueError(
                f"embedding_batch_size must be >= 1, got {self.embedding_batch_size}"
            )


@dataclass
class MLConfig:
    """Top-level ML configuration combining all sub-configs."""

    lexical: LexicalConfig = field(default_factory=LexicalConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    recommend: RecommendConfig = field(default_factory=RecommendConfig)
    heuristic: HeuristicConfig = field(default_factory=HeuristicConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    @classmethod
    def from_env(cls) -> "MLConfig":
        """Load configuration from environment variables."""
        config = cls()

        # Override with environment variables if present
        if batch_size := os.getenv("EMBEDDING_BATCH_SIZE"):
            config.cache.embedding_batch_size = int(batch_size)

        if semantic_weight := os.getenv("SEARCH_SEMANTIC_WEIGHT"):
            config.search.semantic_weight = float(semantic_weight)

        if lexical_weight := os.getenv("SEARCH_LEXICAL_WEIGHT"):
            config.search.lexical_weight = float(lexical_weight)

        if lexical_method := os.getenv("SEARCH_LEXICAL_METHOD"):
            config.search.lexical_method = LexicalMethod(lexical_method.lower())

        return config

    def validate(self) -> None:
        """Validate configuration consistency."""
        assert self.search.min_pool_size >= 1, "Candidate pool must hold at least one item"

        shares = (
            self.heuristic.tier1_share,
            self.heuristic.tier2_share,
            self.heuristic.tier3_share,
        )
        assert all(0 <= s <= 1 for s in shares), "Tier shares must be in [0, 1]"

        assert self.recommend.max_per_brand >= 1, "Brand cap must allow at least one item"


# Global configuration instance
_global_config: Optional[MLConfig] = None


def get_ml_config() -> MLConfig:
    """Get global ML configuration (singleton pattern)."""
    global _global_config
    if _global_config is None:
        _global_config = MLConfig.from_env()
        _global_config.validate()
    return _global_config


def reset_config() -> None:
    """Reset global configuration (useful for testing)."""
    global _global_config
    _global_config = None
