"""
Search Service Module
Catalog lifecycle and caller-facing search and recommendation operations.
"""

from .catalog import Catalog, CatalogSnapshot, compute_median_price
from .search_service import (
    HeuristicResponse,
    RecommendAlgorithm,
    RecommendResponse,
    SearchResponse,
    SearchService,
)

__all__ = [
    "Catalog",
    "CatalogSnapshot",
    "compute_median_price",
    "SearchService",
    "SearchResponse",
    "RecommendResponse",
    "HeuristicResponse",
    "RecommendAlgorithm",
]
