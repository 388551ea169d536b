"""
Tests for the caller-facing search service.
"""

import pytest

from stylerank.ml.errors import InvalidWeights, ItemNotFound
from stylerank.ml.retrieval.heuristic import Tier
from stylerank.ml.retrieval.ranking import Purpose
from stylerank.ml.search.search_service import (
    HeuristicResponse,
    RecommendAlgorithm,
    RecommendResponse,
)


# === SEARCH ===


def test_hybrid_search(service):
    response = service.search("blue dress under 50", top_k=5)

    assert response.method == "hybrid"
    assert [hit.item.id for hit in response.results] == [11]
    assert response.facets == {"color": "blue", "category": "dress", "price_max": 50.0}

    data = response.to_dict()
    assert data["results"][0]["id"] == 11
    assert data["results"][0]["final_score"] == response.results[0].final_score


def test_search_uses_default_top_k(service, ml_config):
    response = service.search("cotton", facets_enabled=False)

    assert len(response.results) == ml_config.search.default_top_k
    assert response.facets == {}


def test_semantic_only_search(service):
    response = service.search("evening dress", hybrid=False)

    assert response.method == "semantic"
    assert all(hit.lexical_score == 0.0 for hit in response.results)


def test_adaptive_search(service):
    response = service.search("nike", adaptive=True)

    assert response.method == "linear_only"
    assert response.results[0].item.id == 5


def test_search_weights(service, ml_config):
    lexical_only = service.search("sneakers", weights={"semantic": 0.0, "lexical": 1.0}, facets_enabled=False)

    for hit in lexical_only.results:
        lexical = min(1.0, hit.lexical_score / ml_config.search.lexical_scale)
        assert hit.final_score == pytest.approx(lexical + sum(hit.boosts.values()))


def test_search_rejects_unknown_weight_keys(service):
    with pytest.raises(InvalidWeights):
        service.search("dress", weights={"semantics": 0.5})


def test_search_with_no_candidates(service):
    response = service.search("blue dress under 20")

    assert response.results == []
    assert response.to_dict()["results"] == []


# === RECOMMENDATIONS ===


def test_recommend(service):
    response = service.recommend(1, top_k=4, include_scoring=True)

    assert isinstance(response, RecommendResponse)
    assert 0 < len(response.results) <= 4
    assert all(r.item.id != 1 for r in response.results)

    data = response.to_dict()
    assert data["metadata"]["base_item_id"] == 1
    assert data["metadata"]["purpose"] == "similar"
    assert data["metadata"]["algorithm"] == "advanced"
    assert "scoring_breakdown" in data["results"][0]


def test_recommend_unknown_item(service):
    with pytest.raises(ItemNotFound):
        service.recommend("nope")


def test_recommend_context_from_mapping(service):
    response = service.recommend(1, purpose="budget", context={"budget": {"min": 0, "max": 50}}, include_scoring=True)

    assert response.purpose == Purpose.BUDGET
    assert response.context.budget.max == 50
    for r in response.results:
        expected = r.breakdown.adjustments["budget_boost"]
        assert expected == (0.03 if r.item.price is not None and r.item.price <= 50 else 0.0)


def test_recommend_invalid_weights(service):
    with pytest.raises(InvalidWeights):
        service.recommend(1, weights={"color": float("nan")})


def test_purpose_helpers(service):
    outfit = service.recommend_outfit(1, top_k=3)
    occasion = service.recommend_for_occasion(1, "formal", top_k=3)
    brand = service.recommend_same_brand(1, top_k=3)
    budget = service.recommend_within_budget(1, {"min": 20, "max": 60}, top_k=3)

    assert outfit.purpose == Purpose.OUTFIT
    assert occasion.purpose == Purpose.OCCASION
    assert occasion.context.occasion == "formal"
    assert brand.purpose == Purpose.BRAND
    assert budget.context.budget.min == 20


def test_legacy_recommendations(service):
    response = service.recommend_similar_legacy(1, top_k=3)

    assert response.algorithm == RecommendAlgorithm.LEGACY
    scores = [r.score for r in response.results]
    assert len(scores) == 3
    assert scores == sorted(scores, reverse=True)


def test_heuristic_recommendations(service):
    response = service.recommend_heuristic(1, top_k=6)

    assert isinstance(response, HeuristicResponse)
    assert 0 < len(response.results) <= 6
    data = response.to_dict()
    assert data["metadata"]["algorithm"] == "heuristic"
    assert data["metadata"]["custom_weights"] is False


def test_heuristic_unknown_item(service):
    with pytest.raises(ItemNotFound):
        service.recommend_heuristic(404)


def test_master_dispatch(service):
    advanced = service.recommend_master(1, top_k=3)
    heuristic = service.recommend_master(1, algorithm="heuristic", top_k=3)
    legacy = service.recommend_master(1, algorithm=RecommendAlgorithm.LEGACY, top_k=3)

    assert advanced.algorithm == RecommendAlgorithm.ADVANCED
    assert isinstance(heuristic, HeuristicResponse)
    assert legacy.algorithm == RecommendAlgorithm.LEGACY


def test_master_rejects_unknown_algorithm(service):
    with pytest.raises(ValueError):
        service.recommend_master(1, algorithm="magic")


def test_analyze_sets(service, embedded_items):
    analysis = service.analyze_sets(1)

    assert analysis.base_item["id"] == 1
    assert sum(analysis.counts.values()) == len(embedded_items) - 1
    assert {entry["id"] for entry in analysis.details[Tier.EXACT_INTENT.key]} == {2, 11}


def test_service_follows_rebuild(service, catalog, catalog_rows):
    catalog.rebuild(catalog_rows[:4])

    with pytest.raises(ItemNotFound):
        service.recommend(11)

    assert len(service.recommend(1, top_k=10).results) <= 3
