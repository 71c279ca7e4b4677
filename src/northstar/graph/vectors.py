"""Numpy-based brute-force vector index.

Cosine similarity against every stored entry. At session scale (hundreds
to a few thousand messages, 384-dim) a full matmul is ~1ms.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from northstar.errors import EmbeddingUnavailable

if TYPE_CHECKING:
    from northstar.memory.embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_TIMEOUT = 10.0


class VectorEntry(BaseModel):
    """Embedded content. Immutable after insert."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    embedding: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d = self.model_dump(mode="json")
        if not d.get("metadata"):
            d.pop("metadata", None)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> VectorEntry:
        return cls.model_validate(d)


def cosine_similarity(a: Iterable[float], b: Iterable[float]) -> float:
    """dot(a, b) / (|a| * |b|), defined as 0.0 when either vector is zero."""
    va = np.asarray(list(a), dtype=np.float64)
    vb = np.asarray(list(b), dtype=np.float64)
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb)) / denom


class VectorIndex:
    """Fixed-dimension embedding store with similarity search.

    The embedding provider is injected; every call into it is bounded by
    ``timeout`` and any failure surfaces as EmbeddingUnavailable. A stale
    matrix cache is rebuilt lazily before search after mutations.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        *,
        dimensions: int | None = None,
        timeout: float | None = DEFAULT_EMBEDDING_TIMEOUT,
    ) -> None:
        self._embedder = embedder
        self._dimensions = dimensions or embedder.dimensions
        self._timeout = timeout
        self._entries: dict[str, VectorEntry] = {}
        self._lock = threading.Lock()
        self._matrix: np.ndarray | None = None
        self._norms: np.ndarray | None = None

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def count(self) -> int:
        return len(self._entries)

    def has(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def get(self, entry_id: str) -> VectorEntry | None:
        return self._entries.get(entry_id)

    async def embed(self, text: str) -> list[float]:
        """Embed text via the provider, translating every failure."""
        try:
            if self._timeout is None:
                vector = await self._embedder.embed(text)
            else:
                vector = await asyncio.wait_for(
                    self._embedder.embed(text), timeout=self._timeout
                )
        except TimeoutError as e:
            raise EmbeddingUnavailable(
                f"embedding timed out after {self._timeout}s"
            ) from e
        except EmbeddingUnavailable:
            raise
        except Exception as e:
            raise EmbeddingUnavailable(f"embedding provider failed: {e}") from e

        if len(vector) != self._dimensions:
            raise EmbeddingUnavailable(
                f"embedding has {len(vector)} dimensions, expected {self._dimensions}"
            )
        return [float(x) for x in vector]

    async def add(
        self, entry_id: str, content: str, metadata: dict[str, Any] | None = None
    ) -> VectorEntry:
        """Embed ``content`` and store it under ``entry_id`` (last write wins).

        A replaced id moves to the end of the insertion order.
        """
        embedding = await self.embed(content)
        entry = VectorEntry(
            id=entry_id,
            content=content,
            embedding=embedding,
            metadata=metadata or {},
        )
        self._put(entry)
        return entry

    def _put(self, entry: VectorEntry) -> None:
        with self._lock:
            self._entries.pop(entry.id, None)
            self._entries[entry.id] = entry
            self._matrix = None
            self._norms = None

    async def search(self, query: str, k: int = 10) -> list[VectorEntry]:
        """Top-``k`` entries by descending cosine similarity to ``query``."""
        return [entry for entry, _ in await self.search_scored(query, k)]

    async def search_scored(
        self, query: str, k: int = 10
    ) -> list[tuple[VectorEntry, float]]:
        """Like ``search`` but returns (entry, similarity) pairs.

        Ties keep insertion order (stable sort).
        """
        if k <= 0 or not self._entries:
            return []

        q = np.asarray(await self.embed(query), dtype=np.float64)

        with self._lock:
            entries = list(self._entries.values())
            matrix, norms = self._materialize(entries)

        if not entries:
            return []

        q_norm = float(np.linalg.norm(q))
        denom = norms * q_norm
        dots = matrix @ q
        scores = np.zeros(len(entries), dtype=np.float64)
        nonzero = denom > 0
        scores[nonzero] = dots[nonzero] / denom[nonzero]

        order = np.argsort(-scores, kind="stable")[:k]
        return [(entries[i], float(scores[i])) for i in order]

    def _materialize(
        self, entries: list[VectorEntry]
    ) -> tuple[np.ndarray, np.ndarray]:
        """Build (or reuse) the embedding matrix. Caller holds the lock."""
        if self._matrix is None or self._norms is None:
            if entries:
                self._matrix = np.asarray(
                    [e.embedding for e in entries], dtype=np.float64
                )
            else:
                self._matrix = np.empty((0, self._dimensions), dtype=np.float64)
            self._norms = np.linalg.norm(self._matrix, axis=1)
        return self._matrix, self._norms

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()
            self._matrix = None
            self._norms = None

    def entries(self) -> list[VectorEntry]:
        """Snapshot of all entries in insertion order."""
        with self._lock:
            return list(self._entries.values())

    def restore(self, entries: Iterable[VectorEntry]) -> None:
        """Replace all entries, skipping any with the wrong dimension."""
        with self._lock:
            self._entries.clear()
            self._matrix = None
            self._norms = None
            for entry in entries:
                if len(entry.embedding) != self._dimensions:
                    logger.warning(
                        "vector_dimension_mismatch",
                        extra={
                            "vector.id": entry.id,
                            "vector.dimensions": len(entry.embedding),
                        },
                    )
                    continue
                self._entries[entry.id] = entry
