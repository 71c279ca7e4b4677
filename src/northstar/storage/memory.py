"""Process-local backend. Nothing survives the process."""

from __future__ import annotations

import copy

from northstar.storage.base import MemorySnapshot


class InMemoryBackend:
    def __init__(self) -> None:
        self._snapshot = MemorySnapshot()

    async def load(self) -> MemorySnapshot:
        return self._copy(self._snapshot)

    async def save(self, snapshot: MemorySnapshot) -> None:
        self._snapshot = self._copy(snapshot)

    async def clear(self) -> None:
        self._snapshot = MemorySnapshot()

    async def close(self) -> None:
        pass

    @staticmethod
    def _copy(snapshot: MemorySnapshot) -> MemorySnapshot:
        # Nodes, edges and vector entries are frozen models; only state is mutable.
        return MemorySnapshot(
            nodes=list(snapshot.nodes),
            edges=list(snapshot.edges),
            vectors=list(snapshot.vectors),
            state=copy.deepcopy(snapshot.state),
        )
