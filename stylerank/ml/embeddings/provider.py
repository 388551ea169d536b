"""
Embedding Provider
Contract for the external text embedding model and a wrapper that maps its
failures onto ProviderUnavailable.
"""

import logging
from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from ..errors import ProviderUnavailable

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Opaque text embedding model.

    embed() returns one fixed-length vector; embed_batch() returns an array
    of shape (len(texts), dim). Either may raise.
    """

    def embed(self, text: str) -> np.ndarray:
        ...

    def embed_batch(self, texts: Sequence[str]) -> np.ndarray:
        ...


def l2_normalize(vectors: np.ndarray) -> np.ndarray:
    """
    L2-normalize a vector or each row of a matrix.

    Zero vectors are left as zeros.
    """
    arr = np.asarray(vectors, dtype=np.float32)
    norms = np.linalg.norm(arr, axis=-1, keepdims=True)
    norms[norms == 0] = 1.0
    return arr / norms


class GuardedEmbeddingProvider:
    """
    Wraps a provider so every failure surfaces as ProviderUnavailable.

    Timeouts and arbitrary provider exceptions become a retryable
    ProviderUnavailable; outputs are coerced to float32 arrays of the
    expected shape.
    """

    def __init__(self, provider: EmbeddingProvider):
        self.provider = provider
        self.name = type(provider).__name__

    @classmethod
    def wrap(cls, provider: EmbeddingProvider) -> "GuardedEmbeddingProvider":
        """Wrap a provider unless it is already guarded."""
        if isinstance(provider, cls):
            return provider
        return cls(provider)

    def _unavailable(self, operation: str, error: Exception) -> ProviderUnavailable:
        if isinstance(error, TimeoutError):
            message = f"Embedding provider timed out during {operation}"
        else:
            message = f"Embedding provider failed during {operation}: {error}"
        return ProviderUnavailable(
            message,
            details={"provider": self.name, "operation": operation, "error": type(error).__name__},
        )

    def embed(self, text: str) -> np.ndarray:
        """
        Embed a single text.

        Raises:
            ProviderUnavailable: If the provider fails, times out or returns
                something that is not a non-empty 1-D vector
        """
        try:
            vector = self.provider.embed(text)
        except ProviderUnavailable:
            raise
        except Exception as e:
            raise self._unavailable("embed", e) from e

        arr = np.asarray(vector, dtype=np.float32).reshape(-1)
        if arr.size == 0 or not np.all(np.isfinite(arr)):
            raise ProviderUnavailable(
                "Embedding provider returned an empty or non-finite vector",
                details={"provider": self.name, "operation": "embed"},
            )
        return arr

    def embed_batch(self, texts: Sequence[str]) -> np.ndarray:
        """
        Embed a batch of texts.

        Returns:
            Array of shape (len(texts), dim)

        Raises:
            ProviderUnavailable: If the provider fails or returns the wrong shape
        """
        try:
            vectors = self.provider.embed_batch(list(texts))
        except ProviderUnavailable:
            raise
        except Exception as e:
            raise self._unavailable("embed_batch", e) from e

        arr = np.asarray(vectors, dtype=np.float32)
        if arr.ndim != 2 or arr.shape[0] != len(texts) or arr.shape[1] == 0:
            raise ProviderUnavailable(
                f"Embedding provider returned shape {arr.shape} for {len(texts)} texts",
                details={"provider": self.name, "operation": "embed_batch"},
            )
        if not np.all(np.isfinite(arr)):
            raise ProviderUnavailable(
                "Embedding provider returned non-finite values",
                details={"provider": self.name, "operation": "embed_batch"},
            )
        return arr
