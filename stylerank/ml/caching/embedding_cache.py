"""
Embedding Cache
Attaches semantic vectors to catalog items, keyed by a content fingerprint of
the corpus so stale vectors are never reused.
"""

import hashlib
import logging
from typing import List, Optional, Sequence

import numpy as np

from ...models.product import Item
from ..config import CacheConfig, get_ml_config
from ..embeddings.provider import EmbeddingProvider, GuardedEmbeddingProvider, l2_normalize
from ..errors import CacheCorrupt, ProviderUnavailable
from .stores import CachedEmbeddings, CacheStore, InMemoryCacheStore

logger = logging.getLogger(__name__)


def compute_fingerprint(items: Sequence[Item]) -> str:
    """
    SHA-256 over "{id}|{search_doc}" lines in catalog order.

    Identical fingerprints mean identical (id, document) pairs, so cached
    vectors for one remain valid for the other.
    """
    lines = "\n".join(f"{item.id}|{item.search_doc}" for item in items)
    return hashlib.sha256(lines.encode("utf-8")).hexdigest()


class EmbeddingCache:
    """
    Owns the mapping from item identity to semantic vector.

    On a fingerprint hit the stored vectors are validated and attached. A
    corrupt entry is discarded and recomputed. On a miss the corpus is
    embedded in batches (falling back to one-at-a-time calls when a batch
    fails) and persisted under the new fingerprint. Provider failures leave
    the store untouched.
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        config: Optional[CacheConfig] = None,
    ):
        """
        Initialize embedding cache.

        Args:
            store: Persistence backend (default: in-memory)
            config: Cache configuration (default: global ML config)
        """
        self.store = store if store is not None else InMemoryCacheStore()
        self.config = config or get_ml_config().cache

        logger.info(
            f"Embedding cache initialized: store={type(self.store).__name__}, "
            f"batch_size={self.config.embedding_batch_size}"
        )

    def ensure_embeddings(self, items: Sequence[Item], provider: EmbeddingProvider) -> List[Item]:
        """
        Return copies of items with embeddings attached.

        Args:
            items: Catalog items, in catalog order
            provider: Embedding provider used on a cache miss

        Returns:
            New Item list with `embedding` populated

        Raises:
            ProviderUnavailable: If the provider cannot embed the corpus
        """
        items = list(items)
        if not items:
            return []

        fingerprint = compute_fingerprint(items)
        ids = [item.id for item in items]

        vectors = self._load(fingerprint, ids)
        if vectors is None:
            logger.info(f"Embedding cache MISS ({fingerprint[:12]}), embedding {len(items)} items")
            vectors = self.compute_vectors([item.search_doc for item in items], provider)
            self._save(CachedEmbeddings.from_vectors(fingerprint, ids, vectors))
        else:
            logger.info(f"Embedding cache HIT ({fingerprint[:12]}): {len(items)} vectors")

        return [item.with_embedding(vector) for item, vector in zip(items, vectors)]

    def _load(self, fingerprint: str, ids: List) -> Optional[np.ndarray]:
        try:
            entry = self.store.load(fingerprint)
            if entry is None:
                return None
            return entry.vectors_for(ids)
        except CacheCorrupt as e:
            logger.warning(f"Discarding corrupt embedding cache: {e.message} {e.details}")
            self.store.discard(fingerprint)
            return None

    def _save(self, entry: CachedEmbeddings) -> None:
        try:
            self.store.save(entry.fingerprint, entry)
        except OSError as e:
            # Vectors are still valid for this session; the next load recomputes
            logger.warning(f"Failed to persist embedding cache {entry.fingerprint[:12]}: {e}")

    def compute_vectors(self, texts: Sequence[str], provider: EmbeddingProvider) -> np.ndarray:
        """
        Embed texts in batches.

        A failing batch is retried one text at a time; a failing single call
        raises ProviderUnavailable.

        Args:
            texts: Texts to embed
            provider: Embedding provider

        Returns:
            Array of shape (len(texts), dim), L2-normalized when configured

        Raises:
            ProviderUnavailable: If any text cannot be embedded or the
                provider returns inconsistent dimensions
        """
        guarded = GuardedEmbeddingProvider.wrap(provider)
        batch_size = self.config.embedding_batch_size
        chunks: List[np.ndarray] = []
        dim: Optional[int] = None

        for start in range(0, len(texts), batch_size):
            batch = list(texts[start : start + batch_size])

            try:
                vectors = guarded.embed_batch(batch)
            except ProviderUnavailable as e:
                logger.warning(
                    f"Batch embedding failed for items {start}-{start + len(batch) - 1}, "
                    f"falling back to single calls: {e.message}"
                )
                vectors = self._embed_one_by_one(guarded, batch)

            if dim is None:
                dim = vectors.shape[1]
            elif vectors.shape[1] != dim:
                raise ProviderUnavailable(
                    "Embedding provider returned inconsistent dimensions",
                    details={"expected": dim, "got": int(vectors.shape[1])},
                )
            chunks.append(vectors)

            logger.debug(f"Embedded {min(start + batch_size, len(texts))}/{len(texts)} texts")

        result = np.vstack(chunks).astype(np.float32)
        if self.config.normalize_embeddings:
            result = l2_normalize(result)
        return result

    @staticmethod
    def _embed_one_by_one(provider: GuardedEmbeddingProvider, texts: List[str]) -> np.ndarray:
        vectors = [provider.embed(text) for text in texts]
        dims = {v.shape[0] for v in vectors}
        if len(dims) != 1:
            raise ProviderUnavailable(
                "Embedding provider returned inconsistent dimensions",
                details={"dims": sorted(dims)},
            )
        return np.vstack(vectors)
