"""JSONL file backend.

Each collection is stored in its own JSONL file alongside a ``state.json``
for session data:

    <data_dir>/
    ├── nodes.jsonl
    ├── edges.jsonl
    ├── vectors.jsonl
    └── state.json

Atomic writes use tempfile + fsync + os.replace(). A file that cannot be
parsed or hydrated is renamed to ``<name>.corrupt-<timestamp>`` and the
whole snapshot loads as empty, so the session restarts from default state.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from northstar.errors import StorageError, ValidationError
from northstar.graph.types import GraphEdge, GraphNode
from northstar.graph.vectors import VectorEntry
from northstar.storage.base import MemorySnapshot

logger = logging.getLogger(__name__)

NODES_FILE = "nodes.jsonl"
EDGES_FILE = "edges.jsonl"
VECTORS_FILE = "vectors.jsonl"
STATE_FILE = "state.json"

_HYDRATION_ERRORS = (
    json.JSONDecodeError,
    UnicodeDecodeError,
    PydanticValidationError,
    ValidationError,
    TypeError,
    KeyError,
)

T = TypeVar("T")


class CorruptFileError(Exception):
    """A persisted file could not be read back."""

    def __init__(self, path: Path, cause: Exception) -> None:
        super().__init__(f"{path}: {cause}")
        self.path = path


class JSONLBackend:
    """Persist snapshots as JSONL files in a directory."""

    def __init__(self, data_dir: Path) -> None:
        self._dir = Path(data_dir)

    @property
    def data_dir(self) -> Path:
        return self._dir

    async def load(self) -> MemorySnapshot:
        return await asyncio.to_thread(self.load_sync)

    async def save(self, snapshot: MemorySnapshot) -> None:
        # Serialize on the calling thread; the worker only does file I/O.
        records = {
            NODES_FILE: [n.to_dict() for n in snapshot.nodes],
            EDGES_FILE: [e.to_dict() for e in snapshot.edges],
            VECTORS_FILE: [v.to_dict() for v in snapshot.vectors],
        }
        state = dict(snapshot.state)
        await asyncio.to_thread(self._write, records, state)

    async def clear(self) -> None:
        await asyncio.to_thread(self._remove_all)

    async def close(self) -> None:
        pass

    def load_sync(self) -> MemorySnapshot:
        """Synchronous variant of ``load``."""
        if not self._dir.exists():
            return MemorySnapshot()
        try:
            snapshot = MemorySnapshot(
                nodes=_hydrate(self._dir / NODES_FILE, GraphNode.from_dict),
                edges=_hydrate(self._dir / EDGES_FILE, GraphEdge.from_dict),
                vectors=_hydrate(self._dir / VECTORS_FILE, VectorEntry.from_dict),
                state=_load_state(self._dir / STATE_FILE),
            )
        except CorruptFileError as e:
            backup = _backup_corrupt(e.path)
            logger.warning(
                "corrupt_state_file",
                extra={
                    "file.path": str(e.path),
                    "file.backup": str(backup),
                    "error.message": str(e.__cause__ or e),
                },
            )
            return MemorySnapshot()

        logger.debug(
            "Loaded snapshot from %s: %d nodes, %d edges, %d vectors",
            self._dir,
            len(snapshot.nodes),
            len(snapshot.edges),
            len(snapshot.vectors),
        )
        return snapshot

    def _write(self, records: dict[str, list[dict[str, Any]]], state: dict[str, Any]) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            for filename, rows in records.items():
                _write_jsonl_atomic(self._dir / filename, rows)
            _write_json_atomic(self._dir / STATE_FILE, state)
        except OSError as e:
            raise StorageError(f"failed to write snapshot to {self._dir}: {e}") from e

    def _remove_all(self) -> None:
        for filename in (NODES_FILE, EDGES_FILE, VECTORS_FILE, STATE_FILE):
            try:
                (self._dir / filename).unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"failed to remove {filename}: {e}") from e


def _hydrate(path: Path, hydrator: Callable[[dict[str, Any]], T]) -> list[T]:
    """Read and hydrate every record, or raise CorruptFileError."""
    if not path.exists():
        return []
    results: list[T] = []
    try:
        with path.open(encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                results.append(hydrator(json.loads(line)))
    except _HYDRATION_ERRORS as e:
        raise CorruptFileError(path, e) from e
    return results


def _load_state(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CorruptFileError(path, e) from e
    if not isinstance(data, dict):
        raise CorruptFileError(path, TypeError("state is not an object"))
    return data


def _backup_corrupt(path: Path) -> Path:
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%f")
    backup = path.with_name(f"{path.name}.corrupt-{stamp}")
    path.replace(backup)
    return backup


def _write_jsonl_atomic(path: Path, records: list[dict[str, Any]]) -> None:
    """Write JSONL atomically via tempfile + fsync + os.replace()."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(record, separators=(",", ":")))
                f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        Path(tmp).replace(path)
    except BaseException:
        try:
            Path(tmp).unlink()
        except OSError:
            pass
        raise


def _write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write JSON atomically via tempfile + fsync + os.replace()."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(data, separators=(",", ":")))
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        Path(tmp).replace(path)
    except BaseException:
        try:
            Path(tmp).unlink()
        except OSError:
            pass
        raise
