"""
Search Quality Evaluation
Attribute-match ground truth and ranking metrics (precision, recall, F1, MAP,
NDCG) for offline comparison of search configurations.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..models.product import Item
from .errors import StyleRankError
from .text.normalize import normalize_text

logger = logging.getLogger(__name__)

# Points per matched attribute
MATCH_WEIGHTS = {
    "brand": 10,
    "category": 8,
    "color": 6,
    "material": 6,
    "occasion": 6,
    "description": 3,
    "name": 3,
}
PRICE_CUE_POINTS = 4
RELEVANCE_THRESHOLD = 3

CHEAP_CUES = ("under", "cheap")
EXPENSIVE_CUES = ("expensive", "high")
CHEAP_PRICE = 50.0
EXPENSIVE_PRICE = 100.0

METRICS = ("precision", "recall", "f1", "map", "ndcg")

# Benchmark queries grouped by what they exercise
TEST_QUERIES: Dict[str, Dict[str, str]] = {
    "nike shoes": {"description": "Brand-specific product search", "category": "brand"},
    "adidas": {"description": "Brand-only search", "category": "brand"},
    "dress": {"description": "Category-specific search", "category": "category"},
    "shoes": {"description": "Footwear category search", "category": "category"},
    "red": {"description": "Color-specific search", "category": "color"},
    "blue dress": {"description": "Color + category combination", "category": "combination"},
    "formal": {"description": "Style/occasion search", "category": "style"},
    "casual summer": {"description": "Style + season combination", "category": "style"},
    "cotton": {"description": "Material-specific search", "category": "material"},
    "leather shoes": {"description": "Material + category combination", "category": "combination"},
    "under 50": {"description": "Price range search", "category": "price"},
    "expensive": {"description": "High price indicator", "category": "price"},
}

SearchFunction = Callable[[str, int], Sequence[Any]]


@dataclass
class RelevantItem:
    """An item judged relevant to a query."""

    item: Item
    relevance: int
    matches: List[str]


@dataclass
class GroundTruth:
    """Relevant items for a query, best first."""

    query: str
    query_words: List[str]
    relevant: List[RelevantItem]
    total_items: int
    threshold: int = RELEVANCE_THRESHOLD

    @property
    def relevant_ids(self) -> List[Any]:
        return [r.item.id for r in self.relevant]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "query_words": self.query_words,
            "relevant": [
                {"id": r.item.id, "name": r.item.name, "relevance": r.relevance, "matches": r.matches}
                for r in self.relevant
            ],
            "total_relevant": len(self.relevant),
            "total_items": self.total_items,
            "threshold": self.threshold,
        }


@dataclass
class EvaluationMetrics:
    """Ranking metrics for one query, rounded to 3 decimals."""

    precision: float
    recall: float
    f1: float
    map: float
    ndcg: float
    relevant_found: int
    total_relevant: int
    total_results: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
            "map": self.map,
            "ndcg": self.ndcg,
            "relevant_found": self.relevant_found,
            "total_relevant": self.total_relevant,
            "total_results": self.total_results,
        }


@dataclass
class QueryEvaluation:
    """Evaluation of one query (metrics is None when the search failed)."""

    query: str
    ground_truth: Optional[GroundTruth] = None
    result_ids: List[Any] = field(default_factory=list)
    metrics: Optional[EvaluationMetrics] = None
    latency_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        info = TEST_QUERIES.get(self.query, {"description": "Custom query", "category": "unknown"})
        return {
            "query": self.query,
            "query_info": info,
            "result_ids": self.result_ids,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "latency_ms": self.latency_ms,
            "error": self.error,
        }


@dataclass
class EvaluationSummary:
    """Per-query evaluations plus averages over the successful ones."""

    evaluations: Dict[str, QueryEvaluation]
    average_metrics: Dict[str, float]
    average_latency_ms: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": {query: e.to_dict() for query, e in self.evaluations.items()},
            "summary": {
                "total_queries": len(self.evaluations),
                "successful_queries": sum(1 for e in self.evaluations.values() if e.metrics),
                "average_metrics": dict(self.average_metrics),
                "average_latency_ms": self.average_latency_ms,
            },
        }


def _contains_any(value: Optional[str], words: Sequence[str]) -> bool:
    if not value:
        return False
    text = normalize_text(value)
    return any(word in text for word in words)


def generate_ground_truth(query: str, items: Sequence[Item], top_k: int = 20) -> GroundTruth:
    """
    Judge item relevance to a query from attribute matches.

    Each attribute containing a query word adds its MATCH_WEIGHTS points;
    "under"/"cheap" adds PRICE_CUE_POINTS for items priced below 50 and
    "expensive"/"high" for items above 100. Items reaching
    RELEVANCE_THRESHOLD points are relevant.

    Args:
        query: Query text
        items: Catalog items
        top_k: Maximum relevant items kept

    Returns:
        GroundTruth with at most top_k items, most relevant first
    """
    normalized = normalize_text(query)
    words = normalized.split()

    judged: List[RelevantItem] = []
    for item in items:
        points = 0
        matches = []
        for attribute, weight in MATCH_WEIGHTS.items():
            if _contains_any(getattr(item, attribute), words):
                points += weight
                matches.append(attribute)

        price = item.price
        if any(cue in normalized for cue in CHEAP_CUES) and price and price < CHEAP_PRICE:
            points += PRICE_CUE_POINTS
            matches.append("price_under_50")
        if any(cue in normalized for cue in EXPENSIVE_CUES) and price and price > EXPENSIVE_PRICE:
            points += PRICE_CUE_POINTS
            matches.append("price_expensive")

        if points >= RELEVANCE_THRESHOLD:
            judged.append(RelevantItem(item=item, relevance=points, matches=matches))

    judged.sort(key=lambda r: r.relevance, reverse=True)

    return GroundTruth(
        query=query,
        query_words=words,
        relevant=judged[:top_k],
        total_items=len(items),
    )


def result_id(result: Any) -> Any:
    """Item id of a search result (SearchHit, Item or mapping)."""
    if isinstance(result, Item):
        return result.id
    if isinstance(result, dict):
        return result.get("id")
    item = getattr(result, "item", None)
    if item is not None:
        return item.id
    return getattr(result, "id", None)


def evaluate_results(ground_truth: GroundTruth, results: Sequence[Any], top_k: int = 10) -> EvaluationMetrics:
    """
    Compare ranked results against ground truth.

    Precision is over the returned results (at most top_k); recall over all
    relevant items; MAP averages precision at each relevant hit; NDCG uses
    binary relevance.

    Args:
        ground_truth: Judged relevant items
        results: Ranked search results
        top_k: Evaluation cutoff

    Returns:
        EvaluationMetrics
    """
    relevant_ids = set(ground_truth.relevant_ids)
    top_ids = [result_id(r) for r in results[:top_k]]

    found = 0
    precision_sum = 0.0
    dcg = 0.0
    for position, item_id in enumerate(top_ids):
        if item_id in relevant_ids:
            found += 1
            precision_sum += found / (position + 1)
            dcg += 1.0 / math.log2(position + 2)

    ideal_hits = min(top_k, len(relevant_ids))
    idcg = sum(1.0 / math.log2(position + 2) for position in range(ideal_hits))

    precision = found / len(top_ids) if top_ids else 0.0
    recall = found / len(relevant_ids) if relevant_ids else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0
    average_precision = precision_sum / found if found else 0.0
    ndcg = dcg / idcg if idcg > 0 else 0.0

    return EvaluationMetrics(
        precision=round(precision, 3),
        recall=round(recall, 3),
        f1=round(f1, 3),
        map=round(average_precision, 3),
        ndcg=round(ndcg, 3),
        relevant_found=found,
        total_relevant=len(relevant_ids),
        total_results=len(top_ids),
    )


def run_evaluation(
    items: Sequence[Item],
    search_fn: SearchFunction,
    queries: Optional[Sequence[str]] = None,
    top_k: int = 10,
) -> EvaluationSummary:
    """
    Evaluate a search function over several queries.

    Ground truth keeps 2 × top_k relevant items per query. A query whose
    search raises a StyleRankError is recorded with its error and left out
    of the averages.

    Args:
        items: Catalog items
        search_fn: Callable(query, top_k) returning ranked results
        queries: Queries to run (default: TEST_QUERIES)
        top_k: Evaluation cutoff

    Returns:
        EvaluationSummary
    """
    queries = list(queries) if queries is not None else list(TEST_QUERIES)
    evaluations: Dict[str, QueryEvaluation] = {}

    for query in queries:
        ground_truth = generate_ground_truth(query, items, top_k * 2)

        start = time.time()
        try:
            results = list(search_fn(query, top_k))
        except StyleRankError as e:
            logger.error(f"Evaluation query '{query}' failed: {e.message}")
            evaluations[query] = QueryEvaluation(query=query, ground_truth=ground_truth, error=e.message)
            continue
        latency = (time.time() - start) * 1000

        evaluations[query] = QueryEvaluation(
            query=query,
            ground_truth=ground_truth,
            result_ids=[result_id(r) for r in results[:top_k]],
            metrics=evaluate_results(ground_truth, results, top_k),
            latency_ms=latency,
        )

    successful = [e for e in evaluations.values() if e.metrics is not None]
    average_metrics: Dict[str, float] = {}
    average_latency = None
    if successful:
        for metric in METRICS:
            values = [getattr(e.metrics, metric) for e in successful]
            average_metrics[metric] = round(sum(values) / len(values), 3)
        average_latency = round(sum(e.latency_ms for e in successful) / len(successful), 1)

    logger.info(
        f"Evaluated {len(queries)} queries ({len(successful)} successful): {average_metrics}"
    )

    return EvaluationSummary(
        evaluations=evaluations,
        average_metrics=average_metrics,
        average_latency_ms=average_latency,
    )
