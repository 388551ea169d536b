"""
Embedding Cache Stores
Persistence backends mapping a corpus fingerprint to (item id order, flat
vector buffer, dimensionality).
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import numpy as np

from ...config.settings import Settings, get_settings
from ..config import CacheConfig, get_ml_config
from ..errors import CacheCorrupt
from .redis_cache import RedisCache

logger = logging.getLogger(__name__)

ItemId = Union[int, str]


@dataclass
class CachedEmbeddings:
    """A persisted embedding corpus."""

    fingerprint: str
    ids: List[ItemId]
    buffer: np.ndarray  # Flat float32 buffer of len(ids) * dim values
    dim: int
    created_at: Optional[str] = None

    @classmethod
    def from_vectors(
        cls, fingerprint: str, ids: Sequence[ItemId], vectors: np.ndarray
    ) -> "CachedEmbeddings":
        vectors = np.asarray(vectors, dtype=np.float32)
        return cls(
            fingerprint=fingerprint,
            ids=list(ids),
            buffer=vectors.reshape(-1),
            dim=int(vectors.shape[1]),
            created_at=datetime.utcnow().isoformat(),
        )

    def vectors_for(self, ids: Sequence[ItemId]) -> np.ndarray:
        """
        Validate this entry against the catalog and return its vectors.

        Args:
            ids: Catalog item ids, in catalog order

        Returns:
            Array of shape (len(ids), dim)

        Raises:
            CacheCorrupt: If id order, vector count or buffer length disagree
        """
        details = {"fingerprint": self.fingerprint, "expected": len(ids), "stored": len(self.ids)}

        if len(self.ids) != len(ids):
            raise CacheCorrupt("Cached vector count does not match item count", details)

        if list(self.ids) != list(ids):
            raise CacheCorrupt("Cached id order does not match catalog order", details)

        if self.dim <= 0 or self.buffer.size != len(ids) * self.dim:
            raise CacheCorrupt(
                "Cached buffer length does not match count x dimension",
                {**details, "dim": self.dim, "buffer_size": int(self.buffer.size)},
            )

        return self.buffer.astype(np.float32, copy=False).reshape(len(ids), self.dim)


class CacheStore(Protocol):
    """Persisted mapping from corpus fingerprint to cached embeddings."""

    def load(self, fingerprint: str) -> Optional[CachedEmbeddings]:
        ...

    def save(self, fingerprint: str, entry: CachedEmbeddings) -> None:
        ...

    def discard(self, fingerprint: str) -> None:
        ...


class InMemoryCacheStore:
    """Process-local store for tests and ephemeral sessions."""

    def __init__(self):
        self._entries: Dict[str, CachedEmbeddings] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def load(self, fingerprint: str) -> Optional[CachedEmbeddings]:
        return self._entries.get(fingerprint)

    def save(self, fingerprint: str, entry: CachedEmbeddings) -> None:
        self._entries[fingerprint] = entry

    def discard(self, fingerprint: str) -> None:
        self._entries.pop(fingerprint, None)


class FileCacheStore:
    """
    Directory-backed store.

    Each fingerprint gets a `<fingerprint>.npy` vector buffer and a
    `<fingerprint>.json` metadata file. Both are written to temporary files
    in the same directory and renamed into place, metadata last, so readers
    never see a half-written entry.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _paths(self, fingerprint: str):
        return (
            self.directory / f"{fingerprint}.npy",
            self.directory / f"{fingerprint}.json",
        )

    def load(self, fingerprint: str) -> Optional[CachedEmbeddings]:
        """
        Load an entry.

        Returns:
            CachedEmbeddings or None when nothing is stored

        Raises:
            CacheCorrupt: If the stored files cannot be read
        """
        buffer_file, metadata_file = self._paths(fingerprint)
        if not metadata_file.exists() or not buffer_file.exists():
            return None

        try:
            metadata = json.loads(metadata_file.read_text())
            buffer = np.load(buffer_file, allow_pickle=False)
            entry = CachedEmbeddings(
                fingerprint=metadata["fingerprint"],
                ids=list(metadata["ids"]),
                buffer=np.asarray(buffer, dtype=np.float32).reshape(-1),
                dim=int(metadata["dim"]),
                created_at=metadata.get("created_at"),
            )
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise CacheCorrupt(
                f"Unreadable embedding cache: {e}",
                details={"fingerprint": fingerprint, "path": str(metadata_file)},
            ) from e

        if entry.fingerprint != fingerprint:
            raise CacheCorrupt(
                "Embedding cache metadata names a different fingerprint",
                details={"fingerprint": fingerprint, "stored": entry.fingerprint},
            )

        logger.debug(f"Loaded embedding cache from {buffer_file}")
        return entry

    def save(self, fingerprint: str, entry: CachedEmbeddings) -> None:
        """Persist an entry atomically (temp file + rename)."""
        self.directory.mkdir(parents=True, exist_ok=True)
        buffer_file, metadata_file = self._paths(fingerprint)

        metadata = {
            "fingerprint": fingerprint,
            "ids": entry.ids,
            "dim": entry.dim,
            "count": len(entry.ids),
            "created_at": entry.created_at or datetime.utcnow().isoformat(),
        }

        self._atomic_write(buffer_file, lambda f: np.save(f, entry.buffer, allow_pickle=False))
        self._atomic_write(metadata_file, lambda f: f.write(json.dumps(metadata).encode("utf-8")))

        logger.info(f"Saved embedding cache: {len(entry.ids)} vectors (dim={entry.dim}) to {buffer_file}")

    def _atomic_write(self, target: Path, write) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                write(f)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def discard(self, fingerprint: str) -> None:
        for path in self._paths(fingerprint):
            path.unlink(missing_ok=True)
        logger.debug(f"Discarded embedding cache {fingerprint[:12]}")


class RedisCacheStore:
    """Redis-backed store holding one pickled payload per fingerprint."""

    def __init__(
        self,
        redis_cache: RedisCache,
        key_prefix: str = "stylerank:embeddings:",
        ttl_hours: Optional[int] = None,
    ):
        self.redis = redis_cache
        self.key_prefix = key_prefix
        self.ttl = ttl_hours * 3600 if ttl_hours else None

    def _key(self, fingerprint: str) -> str:
        return f"{self.key_prefix}{fingerprint}"

    def load(self, fingerprint: str) -> Optional[CachedEmbeddings]:
        payload = self.redis.get(self._key(fingerprint))
        if payload is None:
            return None

        if not isinstance(payload, dict) or not {"ids", "buffer", "dim"} <= payload.keys():
            raise CacheCorrupt(
                "Malformed embedding cache payload in Redis",
                details={"fingerprint": fingerprint},
            )

        try:
            return CachedEmbeddings(
                fingerprint=fingerprint,
                ids=list(payload["ids"]),
                buffer=np.frombuffer(payload["buffer"], dtype=np.float32),
                dim=int(payload["dim"]),
                created_at=payload.get("created_at"),
            )
        except (TypeError, ValueError) as e:
            raise CacheCorrupt(
                f"Unreadable embedding cache payload in Redis: {e}",
                details={"fingerprint": fingerprint},
            ) from e

    def save(self, fingerprint: str, entry: CachedEmbeddings) -> None:
        payload: Dict[str, Any] = {
            "ids": entry.ids,
            "buffer": entry.buffer.astype(np.float32).tobytes(),
            "dim": entry.dim,
            "created_at": entry.created_at,
        }
        if not self.redis.set(self._key(fingerprint), payload, ttl=self.ttl):
            logger.warning(f"Failed to persist embedding cache {fingerprint[:12]} to Redis")

    def discard(self, fingerprint: str) -> None:
        self.redis.delete(self._key(fingerprint))


def create_cache_store(
    settings: Optional[Settings] = None, config: Optional[CacheConfig] = None
) -> CacheStore:
    """
    Build the cache store selected by settings.cache_backend.

    Args:
        settings: Application settings (default: cached settings)
        config: Cache configuration (default: global ML config)

    Returns:
        File, Redis or in-memory store
    """
    settings = settings or get_settings()
    config = config or get_ml_config().cache

    if settings.cache_backend == "redis":
        logger.info("Using Redis embedding cache store")
        return RedisCacheStore(
            RedisCache(settings=settings),
            key_prefix=config.redis_key_prefix,
            ttl_hours=config.redis_ttl_hours,
        )

    if settings.cache_backend == "memory":
        logger.info("Using in-memory embedding cache store")
        return InMemoryCacheStore()

    logger.info(f"Using file embedding cache store at {settings.cache_dir}")
    return FileCacheStore(settings.cache_dir)
