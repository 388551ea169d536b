"""
Tests for the diversity controller.
"""

import pytest

from stylerank.ml.config import RecommendConfig
from stylerank.ml.retrieval.diversity import DiversityController
from stylerank.ml.retrieval.ranking import Recommendation
from stylerank.models.product import Item


def entry(item_id, score, category="dress", brand=None):
    return Recommendation(item=Item(id=item_id, name=f"item {item_id}", category=category, brand=brand), score=score)


@pytest.fixture
def controller():
    return DiversityController(RecommendConfig())


def test_category_caps(controller):
    assert controller.category_caps(5) == (4, 6)
    assert controller.category_caps(5, max_same_category=2) == (2, 3)


def test_base_category_cap(controller):
    ranked = [entry(i, 0.9 - i * 0.01, brand=f"brand{i}") for i in range(6)]
    ranked.append(entry(10, 0.5, category="boots", brand="bata"))

    results = controller.apply(ranked, top_k=5, base_category="dress", max_same_category=2)

    assert [r.item.id for r in results] == [0, 1, 10]


def test_brand_cap(controller):
    ranked = [entry(i, 0.9, category=f"cat{i}", brand="zara") for i in range(4)]
    ranked.append(entry(9, 0.8, category="boots", brand="bata"))

    results = controller.apply(ranked, top_k=5)

    assert [r.item.id for r in results] == [0, 1, 9]


def test_missing_brands_share_unknown_bucket(controller):
    ranked = [entry(i, 0.9, category=f"cat{i}", brand=None) for i in range(4)]

    results = controller.apply(ranked, top_k=4)

    assert len(results) == controller.config.max_per_brand


def test_diversity_threshold_spares_first_entry(controller):
    ranked = [
        entry(1, 0.2, brand="a"),
        entry(2, 0.25, category="boots", brand="b"),
    ]

    results = controller.apply(ranked, top_k=5, diversity_threshold=0.3)

    assert [r.item.id for r in results] == [1]


def test_stops_at_top_k_and_preserves_order(controller):
    ranked = [entry(i, 1.0 - i * 0.1, category=f"cat{i}", brand=f"b{i}") for i in range(6)]

    results = controller.apply(ranked, top_k=3)

    assert [r.item.id for r in results] == [0, 1, 2]


def test_zero_top_k(controller):
    assert controller.apply([entry(1, 0.9)], top_k=0) == []
