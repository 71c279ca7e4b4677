"""SQLite backend on SQLAlchemy's async engine (aiosqlite driver).

Snapshots are written whole: every save replaces the contents of all four
tables inside one transaction. Embeddings are stored as float32 BLOBs, so
restored vectors carry float32 precision.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path

import numpy as np
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, select
from sqlalchemy.exc import DatabaseError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from northstar.db.models import Base, EdgeRow, KVRow, NodeRow, VectorRow
from northstar.errors import StorageError, ValidationError
from northstar.graph.types import GraphEdge, GraphNode
from northstar.graph.vectors import VectorEntry
from northstar.storage.base import MemorySnapshot

logger = logging.getLogger(__name__)

DATABASE_FILE = "northstar.db"


def encode_embedding(embedding: list[float]) -> bytes:
    return np.asarray(embedding, dtype=np.float32).tobytes()


def decode_embedding(blob: bytes) -> list[float]:
    return np.frombuffer(blob, dtype=np.float32).astype(np.float64).tolist()


class SQLiteBackend:
    """Persist snapshots to an embedded SQLite database."""

    def __init__(self, database_path: Path) -> None:
        self._path = Path(database_path)
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def database_path(self) -> Path:
        return self._path

    async def _open(self) -> async_sessionmaker[AsyncSession]:
        """Create the engine and any missing tables on first use."""
        if self._sessions is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            engine = create_async_engine(f"sqlite+aiosqlite:///{self._path}")
            try:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
            except BaseException:
                await engine.dispose()
                raise
            self._engine = engine
            self._sessions = async_sessionmaker(engine, expire_on_commit=False)
        return self._sessions

    async def load(self) -> MemorySnapshot:
        if not self._path.exists():
            return MemorySnapshot()
        try:
            sessions = await self._open()
            async with sessions() as session:
                node_rows = (
                    await session.scalars(select(NodeRow).order_by(NodeRow.position))
                ).all()
                edge_rows = (
                    await session.scalars(select(EdgeRow).order_by(EdgeRow.position))
                ).all()
                vector_rows = (
                    await session.scalars(select(VectorRow).order_by(VectorRow.position))
                ).all()
                kv_rows = (await session.scalars(select(KVRow))).all()

            snapshot = MemorySnapshot(
                nodes=[_node_from_row(r) for r in node_rows],
                edges=[_edge_from_row(r) for r in edge_rows],
                vectors=[_vector_from_row(r) for r in vector_rows],
                state={r.key: r.value for r in kv_rows},
            )
        except (DatabaseError, PydanticValidationError, ValidationError, ValueError) as e:
            await self._recover(e)
            return MemorySnapshot()

        logger.debug(
            "Loaded snapshot from %s: %d nodes, %d edges, %d vectors",
            self._path,
            len(snapshot.nodes),
            len(snapshot.edges),
            len(snapshot.vectors),
        )
        return snapshot

    async def save(self, snapshot: MemorySnapshot) -> None:
        try:
            sessions = await self._open()
            async with sessions.begin() as session:
                await _delete_all(session)
                session.add_all(
                    _node_to_row(node, idx) for idx, node in enumerate(snapshot.nodes)
                )
                session.add_all(
                    _edge_to_row(edge, idx) for idx, edge in enumerate(snapshot.edges)
                )
                session.add_all(
                    _vector_to_row(entry, idx)
                    for idx, entry in enumerate(snapshot.vectors)
                )
                session.add_all(
                    KVRow(key=key, value=value) for key, value in snapshot.state.items()
                )
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"failed to write snapshot to {self._path}: {e}") from e

    async def clear(self) -> None:
        if not self._path.exists():
            return
        try:
            sessions = await self._open()
            async with sessions.begin() as session:
                await _delete_all(session)
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(f"failed to clear {self._path}: {e}") from e

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessions = None

    async def _recover(self, error: Exception) -> None:
        """Move an unreadable database aside so the next save starts fresh."""
        await self.close()
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%f")
        backup = self._path.with_name(f"{self._path.name}.corrupt-{stamp}")
        self._path.replace(backup)
        logger.warning(
            "corrupt_state_file",
            extra={
                "file.path": str(self._path),
                "file.backup": str(backup),
                "error.message": str(error),
            },
        )


async def _delete_all(session: AsyncSession) -> None:
    for model in (NodeRow, EdgeRow, VectorRow, KVRow):
        await session.execute(delete(model))


def _node_to_row(node: GraphNode, position: int) -> NodeRow:
    return NodeRow(
        id=node.id,
        position=position,
        type=node.type.value,
        content=node.content,
        created_at=node.created_at.isoformat(),
        metadata_=node.metadata or None,
    )


def _node_from_row(row: NodeRow) -> GraphNode:
    return GraphNode.from_dict(
        {
            "id": row.id,
            "type": row.type,
            "content": row.content,
            "created_at": row.created_at,
            "metadata": row.metadata_ or {},
        }
    )


def _edge_to_row(edge: GraphEdge, position: int) -> EdgeRow:
    return EdgeRow(
        source_id=edge.source_id,
        target_id=edge.target_id,
        type=edge.type.value,
        position=position,
        weight=edge.weight,
        created_at=edge.created_at.isoformat(),
    )


def _edge_from_row(row: EdgeRow) -> GraphEdge:
    return GraphEdge.from_dict(
        {
            "source_id": row.source_id,
            "target_id": row.target_id,
            "type": row.type,
            "weight": row.weight,
            "created_at": row.created_at,
        }
    )


def _vector_to_row(entry: VectorEntry, position: int) -> VectorRow:
    return VectorRow(
        id=entry.id,
        position=position,
        content=entry.content,
        embedding=encode_embedding(entry.embedding),
        metadata_=entry.metadata or None,
    )


def _vector_from_row(row: VectorRow) -> VectorEntry:
    return VectorEntry(
        id=row.id,
        content=row.content,
        embedding=decode_embedding(row.embedding),
        metadata=row.metadata_ or {},
    )
