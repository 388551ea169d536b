"""
Tests for hybrid lexical + semantic search.
"""

import numpy as np
import pytest

from stylerank.ml.config import LexicalConfig, SearchConfig
from stylerank.ml.errors import InvalidWeights, ProviderUnavailable
from stylerank.ml.retrieval.facets import FacetVocabulary
from stylerank.ml.retrieval.hybrid_search import HybridSearch, SearchOptions
from stylerank.ml.retrieval.lexical_index import LexicalIndex
from stylerank.models.product import Item


class FixedQueryProvider:
    """Embeds every query as the same unit vector."""

    def __init__(self, vector=(1.0, 0.0)):
        self.vector = np.array(vector, dtype=np.float32)
        self.calls = 0

    def embed(self, text):
        self.calls += 1
        return self.vector

    def embed_batch(self, texts):
        self.calls += 1
        return np.vstack([self.vector for _ in texts])


class TimeoutProvider:
    def embed(self, text):
        raise TimeoutError("model did not answer")

    def embed_batch(self, texts):
        raise TimeoutError("model did not answer")


@pytest.fixture
def controlled_items():
    return [
        Item(id=1, name="Blue Dress", category="dress", color="blue", price=100).with_embedding([0.8, 0.6]),
        Item(id=2, name="Red Shoes", category="shoes", color="red", price=50, in_stock=False).with_embedding(
            [0.0, 1.0]
        ),
        Item(id=3, name="Blue Shirt", category="shirt", color="blue", price=40).with_embedding([0.6, 0.8]),
    ]


@pytest.fixture
def controlled_engine(controlled_items):
    return HybridSearch(
        provider=FixedQueryProvider(),
        index=LexicalIndex.build(controlled_items, LexicalConfig()),
        vocabulary=FacetVocabulary.from_items(controlled_items),
        median_price=100.0,
        config=SearchConfig(),
    )


@pytest.fixture
def snapshot_engine(catalog, provider):
    snapshot = catalog.snapshot
    return HybridSearch(
        provider=provider,
        index=snapshot.index,
        vocabulary=snapshot.vocabulary,
        median_price=snapshot.median_price,
        config=SearchConfig(),
    )


# === FUSION & BOOSTS ===


def test_fusion_with_boosts_is_uncapped(controlled_engine, controlled_items):
    # semantic 0.8, lexical 5.0 / 10 = 0.5, in stock, priced at the median
    fused = controlled_engine.fuse(semantic=0.8, lexical=5.0, semantic_weight=0.7, lexical_weight=0.3)
    boosts = controlled_engine.business_boosts(controlled_items[0])

    assert fused == pytest.approx(0.71)
    assert boosts == {"in_stock": 0.2, "median_price": 0.1}
    assert fused + sum(boosts.values()) == pytest.approx(1.01)


def test_fusion_clamps_components(controlled_engine):
    assert controlled_engine.fuse(-0.5, 0.0, 0.7, 0.3) == 0.0
    assert controlled_engine.fuse(0.0, 50.0, 0.7, 0.3) == pytest.approx(0.3)


def test_no_boosts_out_of_stock_and_far_from_median(controlled_engine, controlled_items):
    assert controlled_engine.business_boosts(controlled_items[1]) == {}


def test_no_median_boost_without_median(controlled_items):
    engine = HybridSearch(
        provider=FixedQueryProvider(),
        index=LexicalIndex.build(controlled_items, LexicalConfig()),
        median_price=None,
        config=SearchConfig(),
    )

    assert engine.business_boosts(controlled_items[0]) == {"in_stock": 0.2}


def test_hit_scores_follow_fusion(controlled_engine, controlled_items):
    hits = controlled_engine.search(controlled_items, "dress", SearchOptions(top_k=3, facets_enabled=False))

    assert len(hits) == 3
    for hit in hits:
        expected = controlled_engine.fuse(hit.semantic_score, hit.lexical_score, 0.7, 0.3)
        expected += sum(hit.boosts.values())
        assert hit.final_score == pytest.approx(expected)

    top = hits[0]
    assert top.item.id == 1
    assert top.semantic_score == pytest.approx(0.8)
    assert top.final_score == pytest.approx(0.56 + 0.3 * min(1.0, top.lexical_score / 10) + 0.3)


# === SEARCH PATHS ===


def test_search_results_are_ranked(snapshot_engine, embedded_items):
    hits = snapshot_engine.search(embedded_items, "leather boots", SearchOptions(top_k=4))

    assert 0 < len(hits) <= 4
    assert [h.rank for h in hits] == list(range(len(hits)))
    scores = [h.final_score for h in hits]
    assert scores == sorted(scores, reverse=True)
    assert all(h.method == "hybrid" for h in hits)
    assert hits[0].item.id == 4


def test_facets_filter_before_ranking(snapshot_engine, embedded_items):
    hits = snapshot_engine.search(embedded_items, "blue dress under 50", SearchOptions(top_k=5))

    assert [h.item.id for h in hits] == [11]


def test_empty_candidate_pool_returns_empty_without_embedding(catalog):
    provider = FixedQueryProvider(vector=np.ones(64))
    snapshot = catalog.snapshot
    engine = HybridSearch(provider, snapshot.index, snapshot.vocabulary, snapshot.median_price, SearchConfig())

    assert engine.search(list(snapshot.items), "blue dress under 20") == []
    assert engine.semantic_search(list(snapshot.items), "blue dress under 20") == []
    assert provider.calls == 0


def test_facets_can_be_disabled(snapshot_engine, embedded_items):
    hits = snapshot_engine.search(
        embedded_items, "blue dress under 20", SearchOptions(top_k=5, facets_enabled=False)
    )

    assert len(hits) == 5


def test_early_termination_does_not_change_top_k(snapshot_engine, embedded_items):
    with_et = snapshot_engine.search(embedded_items, "cotton", SearchOptions(top_k=3, early_termination=True))
    without = snapshot_engine.search(embedded_items, "cotton", SearchOptions(top_k=3, early_termination=False))

    assert [h.item.id for h in with_et] == [h.item.id for h in without]


def test_candidate_pool_bounds_semantic_scoring(snapshot_engine, embedded_items):
    options = SearchOptions(top_k=5, candidate_pool_size=2, facets_enabled=False)
    hits = snapshot_engine.search(embedded_items, "sneakers", options)

    assert len(hits) == 2
    assert {h.item.id for h in hits} == {5, 6}


def test_score_ties_keep_catalog_order():
    items = [
        Item(id="a", name="Plain Tee").with_embedding([1.0, 0.0]),
        Item(id="b", name="Linen Tee", description="linen linen").with_embedding([1.0, 0.0]),
    ]
    engine = HybridSearch(
        provider=FixedQueryProvider(),
        index=LexicalIndex.build(items, LexicalConfig()),
        vocabulary=FacetVocabulary.from_items(items),
        config=SearchConfig(),
    )

    hits = engine.search(items, "linen", SearchOptions(lexical_weight=0.0))

    # "b" ranks first lexically, but the final scores are equal
    assert hits[0].lexical_score < hits[1].lexical_score
    assert hits[0].final_score == pytest.approx(hits[1].final_score)
    assert [h.item.id for h in hits] == ["a", "b"]


def test_semantic_search(snapshot_engine, embedded_items):
    options = SearchOptions(top_k=3, facets_enabled=False)
    hits = snapshot_engine.semantic_search(embedded_items, "wool sweater", options)

    assert len(hits) == 3
    assert all(h.method == "semantic" and h.lexical_score == 0.0 for h in hits)
    assert hits[0].final_score == hits[0].semantic_score


def test_lexical_search_never_embeds(catalog, embedded_items):
    provider = FixedQueryProvider(vector=np.ones(64))
    snapshot = catalog.snapshot
    engine = HybridSearch(provider, snapshot.index, snapshot.vocabulary, snapshot.median_price, SearchConfig())

    hits = engine.lexical_search(embedded_items, "nike", SearchOptions(top_k=2))

    assert provider.calls == 0
    assert hits[0].item.id == 5
    assert hits[0].method == "linear_only"


def test_adaptive_search_routes_by_query(catalog, embedded_items):
    provider = FixedQueryProvider(vector=np.ones(64))
    snapshot = catalog.snapshot
    engine = HybridSearch(provider, snapshot.index, snapshot.vocabulary, snapshot.median_price, SearchConfig())

    assert engine.prefers_lexical("zara")
    assert engine.prefers_lexical("red top")
    assert not engine.prefers_lexical("flowing evening outfit for parties")

    short = engine.adaptive_search(embedded_items, "zara")
    assert provider.calls == 0
    assert all(h.method == "linear_only" for h in short)

    engine.adaptive_search(embedded_items, "flowing evening outfit for parties")
    assert provider.calls == 1


def test_provider_timeout_surfaces_as_unavailable(catalog, embedded_items):
    snapshot = catalog.snapshot
    engine = HybridSearch(TimeoutProvider(), snapshot.index, snapshot.vocabulary, snapshot.median_price)

    with pytest.raises(ProviderUnavailable) as exc:
        engine.search(embedded_items, "evening dress")

    assert exc.value.retryable


@pytest.mark.parametrize("weight", [float("nan"), float("inf"), -0.1, "heavy"])
def test_invalid_fusion_weights(weight):
    with pytest.raises(InvalidWeights):
        SearchOptions(semantic_weight=weight)
