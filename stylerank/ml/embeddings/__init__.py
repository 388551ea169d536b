"""
Embeddings Module
Contract for the external embedding model and a guarded wrapper around it.
"""

from .provider import EmbeddingProvider, GuardedEmbeddingProvider, l2_normalize

__all__ = [
    "EmbeddingProvider",
    "GuardedEmbeddingProvider",
    "l2_normalize",
]
