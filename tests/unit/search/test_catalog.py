"""
Tests for the catalog build/rebuild lifecycle.
"""

import pytest

from stylerank.ml.caching.embedding_cache import EmbeddingCache
from stylerank.ml.caching.stores import InMemoryCacheStore
from stylerank.ml.errors import ItemNotFound, ProviderUnavailable, StyleRankError
from stylerank.ml.search.catalog import Catalog, compute_median_price
from stylerank.models.product import Item


class FlakyProvider:
    """Works until switched off."""

    def __init__(self, inner):
        self.inner = inner
        self.down = False

    def embed(self, text):
        if self.down:
            raise TimeoutError("timed out")
        return self.inner.embed(text)

    def embed_batch(self, texts):
        if self.down:
            raise TimeoutError("timed out")
        return self.inner.embed_batch(texts)


def test_median_price():
    items = [Item(id=i, name="x", price=p) for i, p in enumerate([10, None, 30, 20])]

    assert compute_median_price(items) == 20.0
    assert compute_median_price([Item(id=1, name="x")]) is None


def test_snapshot_contents(catalog, catalog_rows):
    snapshot = catalog.snapshot

    assert catalog.is_built
    assert len(snapshot) == len(catalog_rows)
    assert all(item.has_embedding for item in snapshot.items)
    assert len(snapshot.index) == len(catalog_rows)
    assert "dress" in snapshot.vocabulary.categories
    assert snapshot.median_price == 57.5
    assert snapshot.stats()["num_items"] == len(catalog_rows)


def test_get_unknown_item(catalog):
    with pytest.raises(ItemNotFound):
        catalog.snapshot.get("missing")

    assert catalog.snapshot.get(4).name == "Black Leather Boots"


def test_unbuilt_catalog(provider, ml_config):
    catalog = Catalog(provider, config=ml_config)

    assert not catalog.is_built
    with pytest.raises(StyleRankError):
        catalog.snapshot


def test_build_twice_is_rejected(catalog, catalog_rows):
    with pytest.raises(StyleRankError):
        catalog.build(catalog_rows)


def test_duplicate_ids_are_rejected(provider, ml_config, catalog_rows):
    catalog = Catalog(provider, config=ml_config)
    rows = catalog_rows + [dict(catalog_rows[0])]

    with pytest.raises(ValueError):
        catalog.build(rows)

    assert not catalog.is_built


def test_rebuild_swaps_snapshot(catalog, catalog_rows):
    old = catalog.snapshot
    new = catalog.rebuild(catalog_rows[:3])

    assert catalog.snapshot is new
    assert len(new) == 3
    assert len(old) == len(catalog_rows)
    assert new.fingerprint != old.fingerprint


def test_failed_rebuild_keeps_previous_snapshot(provider, ml_config, catalog_rows):
    flaky = FlakyProvider(provider)
    cache = EmbeddingCache(store=InMemoryCacheStore(), config=ml_config.cache)
    catalog = Catalog(flaky, cache=cache, config=ml_config)
    catalog.build(catalog_rows)
    before = catalog.snapshot

    flaky.down = True
    with pytest.raises(ProviderUnavailable):
        catalog.rebuild(catalog_rows[:2])

    assert catalog.snapshot is before


def test_rebuild_with_same_rows_hits_cache(catalog, provider, catalog_rows):
    calls = provider.calls

    catalog.rebuild(catalog_rows)

    assert provider.calls == calls
