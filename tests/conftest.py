"""
Pytest configuration and shared fixtures
"""

import hashlib
import sys
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from stylerank.ml.caching.embedding_cache import EmbeddingCache
from stylerank.ml.caching.stores import InMemoryCacheStore
from stylerank.ml.config import MLConfig, reset_config
from stylerank.ml.search.catalog import Catalog
from stylerank.ml.search.search_service import SearchService
from stylerank.ml.text.normalize import tokenize
from stylerank.models.product import Item

EMBEDDING_DIM = 64


class HashingEmbeddingProvider:
    """
    Deterministic bag-of-words embedder.

    Each token is hashed into one of EMBEDDING_DIM buckets, so texts sharing
    words have positive cosine similarity.
    """

    def __init__(self, dim: int = EMBEDDING_DIM):
        self.dim = dim
        self.embed_calls = 0
        self.batch_calls = 0

    def _vector(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dim, dtype=np.float32)
        for token in tokenize(text):
            bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % self.dim
            vector[bucket] += 1.0
        if not vector.any():
            vector[0] = 1.0
        return vector

    def embed(self, text):
        self.embed_calls += 1
        return self._vector(text)

    def embed_batch(self, texts):
        self.batch_calls += 1
        return np.vstack([self._vector(t) for t in texts])

    @property
    def calls(self) -> int:
        return self.embed_calls + self.batch_calls


CATALOG_ROWS = [
    {
        "id": 1,
        "name": "Crimson Silk Evening Dress",
        "category": "Dress",
        "brand": "Zara",
        "color": "Crimson",
        "material": "Satin",
        "occasion": "party",
        "age_group": "adults",
        "size": "M",
        "price": "45.00",
        "description": "Flowing evening dress for parties",
    },
    {
        "id": 2,
        "name": "Red Cotton Summer Dress",
        "category": "dress",
        "brand": "H&M",
        "color": "red",
        "material": "cotton",
        "occasion": "casual",
        "age_group": "adults",
        "size": "S",
        "price": 30,
        "description": "Light summer dress",
    },
    {
        "id": 3,
        "name": "Denim Shirt Dress",
        "category": "dress",
        "brand": "Levis",
        "color": "navy",
        "material": "denim",
        "occasion": "casual",
        "size": "M",
        "price": 55,
    },
    {
        "id": 4,
        "name": "Black Leather Boots",
        "category": "boots",
        "brand": "Bata",
        "color": "black",
        "material": "leather",
        "occasion": "formal",
        "size": "8 UK",
        "price": 80,
    },
    {
        "id": 5,
        "name": "Nike Running Sneakers",
        "category": "sneakers",
        "brand": "Nike",
        "color": "white",
        "material": "synthetic",
        "occasion": "sports",
        "size": "9 UK",
        "price": 120,
    },
    {
        "id": 6,
        "name": "Adidas Sports Sneakers",
        "category": "sneakers",
        "brand": "Adidas",
        "color": "blue",
        "material": "polyester",
        "occasion": "sports",
        "size": "8 UK",
        "price": 95,
    },
    {
        "id": 7,
        "name": "Tan Leather Handbag",
        "category": "handbag",
        "brand": "Gucci",
        "color": "tan",
        "material": "leather",
        "occasion": "formal",
        "size": "One Size",
        "price": 250,
    },
    {
        "id": 8,
        "name": "Blue Cotton Shirt",
        "category": "shirt",
        "brand": "Zara",
        "color": "blue",
        "material": "cotton",
        "occasion": "office",
        "size": "L",
        "price": 40,
    },
    {
        "id": 9,
        "name": "Grey Wool Sweater",
        "category": "sweater",
        "brand": "H&M",
        "color": "grey",
        "material": "wool",
        "occasion": "winter",
        "size": "XL",
        "price": 60,
        "in_stock": "no",
    },
    {
        "id": 10,
        "name": "Silver Watch",
        "category": "watch",
        "brand": "Fossil",
        "color": "silver",
        "material": "metal",
        "occasion": "formal",
    },
    {
        "id": 11,
        "name": "Navy Chiffon Midi Dress",
        "category": "dress",
        "brand": "Zara",
        "color": "navy",
        "material": "chiffon",
        "occasion": "party",
        "size": "S",
        "price": 48,
        "description": "Midi dress with pleated skirt",
    },
]


@pytest.fixture(autouse=True)
def fresh_config():
    """Isolate the global ML config between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def ml_config():
    return MLConfig()


@pytest.fixture
def provider():
    return HashingEmbeddingProvider()


@pytest.fixture
def catalog_rows():
    """Raw attribute rows, as a loader would supply them."""
    return [dict(row) for row in CATALOG_ROWS]


@pytest.fixture
def items():
    """Catalog items without embeddings."""
    return [Item(**row) for row in CATALOG_ROWS]


@pytest.fixture
def catalog(provider, ml_config):
    """Built catalog over the sample rows."""
    cache = EmbeddingCache(store=InMemoryCacheStore(), config=ml_config.cache)
    catalog = Catalog(provider, cache=cache, config=ml_config)
    catalog.build(CATALOG_ROWS)
    return catalog


@pytest.fixture
def embedded_items(catalog):
    """Catalog items with embeddings attached."""
    return list(catalog.snapshot.items)


@pytest.fixture
def service(catalog, ml_config):
    return SearchService(catalog, config=ml_config)
