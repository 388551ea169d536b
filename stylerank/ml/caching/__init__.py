"""
Caching Module
Fingerprint-keyed embedding cache with file, Redis and in-memory stores.
"""

from .redis_cache import RedisCache, RedisCacheError
from .stores import (
    CachedEmbeddings,
    CacheStore,
    FileCacheStore,
    InMemoryCacheStore,
    RedisCacheStore,
    create_cache_store,
)
from .embedding_cache import EmbeddingCache, compute_fingerprint

__all__ = [
    "RedisCache",
    "RedisCacheError",
    "CachedEmbeddings",
    "CacheStore",
    "FileCacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "create_cache_store",
    "EmbeddingCache",
    "compute_fingerprint",
]
