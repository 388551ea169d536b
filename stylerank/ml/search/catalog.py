"""
Catalog
Owns the items, lexical index, facet vocabulary and median price of one
catalog load, with an explicit build()/rebuild() lifecycle.
"""

import logging
import statistics
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from ...models.product import Item
from ..caching.embedding_cache import EmbeddingCache, compute_fingerprint
from ..config import MLConfig, get_ml_config
from ..embeddings.provider import EmbeddingProvider
from ..errors import ItemNotFound, StyleRankError
from ..retrieval.facets import FacetVocabulary
from ..retrieval.lexical_index import LexicalIndex

logger = logging.getLogger(__name__)

ItemLike = Union[Item, Mapping[str, Any]]


def compute_median_price(items: Iterable[Item]) -> Optional[float]:
    """Median of known final prices (None when no item has a price)."""
    prices = [item.price for item in items if item.price is not None]
    if not prices:
        return None
    return float(statistics.median(prices))


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    Fully built, read-only catalog state.

    Readers take one snapshot reference per call; a rebuild swaps in a new
    snapshot and never mutates an existing one.
    """

    items: Tuple[Item, ...]
    index: LexicalIndex
    vocabulary: FacetVocabulary
    median_price: Optional[float]
    fingerprint: str
    built_at: datetime = field(default_factory=datetime.utcnow)
    _by_id: Dict[Any, Item] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        if not self._by_id:
            object.__setattr__(self, "_by_id", {item.id: item for item in self.items})

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, item_id) -> bool:
        return item_id in self._by_id

    def get(self, item_id) -> Item:
        """
        Look up an item.

        Raises:
            ItemNotFound: If the id is not in this snapshot
        """
        try:
            return self._by_id[item_id]
        except KeyError:
            raise ItemNotFound(item_id) from None

    def stats(self) -> Dict[str, Any]:
        return {
            "num_items": len(self.items),
            "vocabulary_size": self.index.vocabulary_size,
            "avg_doc_length": self.index.avg_doc_length,
            "median_price": self.median_price,
            "fingerprint": self.fingerprint,
            "built_at": self.built_at.isoformat(),
        }


class Catalog:
    """
    Catalog session.

    build() performs the initial load; rebuild() replaces the whole catalog.
    Both construct a complete snapshot first (embeddings, lexical index,
    vocabulary, median price) and then swap it in under a lock, so a failed
    rebuild leaves the previous snapshot in place.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache: Optional[EmbeddingCache] = None,
        config: Optional[MLConfig] = None,
    ):
        """
        Initialize catalog.

        Args:
            provider: Embedding provider for corpus and query embedding
            cache: Embedding cache (default: in-memory store)
            config: ML configuration
        """
        self.config = config or get_ml_config()
        self.provider = provider
        self.cache = cache or EmbeddingCache(config=self.config.cache)

        self._lock = threading.RLock()
        self._snapshot: Optional[CatalogSnapshot] = None

    @property
    def is_built(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> CatalogSnapshot:
        """
        Current snapshot.

        Raises:
            StyleRankError: If the catalog has not been built
        """
        snapshot = self._snapshot
        if snapshot is None:
            raise StyleRankError("Catalog has not been built")
        return snapshot

    def build(self, items: Sequence[ItemLike]) -> CatalogSnapshot:
        """
        Initial catalog load.

        Raises:
            StyleRankError: If the catalog is already built (use rebuild())
            ProviderUnavailable: If embeddings cannot be computed
        """
        with self._lock:
            if self._snapshot is not None:
                raise StyleRankError("Catalog is already built; use rebuild() to reload")
            return self.rebuild(items)

    def rebuild(self, items: Sequence[ItemLike]) -> CatalogSnapshot:
        """
        Build a new snapshot from items and swap it in.

        Args:
            items: Items or attribute mappings, in catalog order

        Returns:
            The new snapshot

        Raises:
            ValueError: If item ids are not unique
            ProviderUnavailable: If embeddings cannot be computed
        """
        with self._lock:
            snapshot = self._build_snapshot(items)
            self._snapshot = snapshot
            return snapshot

    def _build_snapshot(self, raw_items: Sequence[ItemLike]) -> CatalogSnapshot:
        start = time.time()

        items = [
            raw if isinstance(raw, Item) else Item.model_validate(raw) for raw in raw_items
        ]

        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            duplicates = sorted({str(i) for i in ids if ids.count(i) > 1})
            raise ValueError(f"Duplicate item ids in catalog: {', '.join(duplicates)}")

        embedded = self.cache.ensure_embeddings(items, self.provider)
        index = LexicalIndex.build(embedded, self.config.lexical)

        snapshot = CatalogSnapshot(
            items=tuple(embedded),
            index=index,
            vocabulary=FacetVocabulary.from_items(embedded),
            median_price=compute_median_price(embedded),
            fingerprint=compute_fingerprint(embedded),
        )

        logger.info(
            f"Catalog built: {len(snapshot)} items, median price {snapshot.median_price}, "
            f"in {(time.time() - start) * 1000:.1f}ms"
        )
        return snapshot
