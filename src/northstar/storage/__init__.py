"""Pluggable persistence backends for session snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING

from northstar.storage.base import MemorySnapshot, SnapshotBackend
from northstar.storage.jsonl import JSONLBackend
from northstar.storage.memory import InMemoryBackend
from northstar.storage.sqlite import DATABASE_FILE, SQLiteBackend

if TYPE_CHECKING:
    from northstar.config.models import StorageConfig


def create_backend(config: StorageConfig) -> SnapshotBackend:
    """Build the configured backend."""
    if config.backend == "memory":
        return InMemoryBackend()
    if config.backend == "jsonl":
        return JSONLBackend(config.path)
    if config.backend == "sqlite":
        return SQLiteBackend(config.path / DATABASE_FILE)
    raise ValueError(f"Unknown storage backend: {config.backend}")


__all__ = [
    "InMemoryBackend",
    "JSONLBackend",
    "MemorySnapshot",
    "SQLiteBackend",
    "SnapshotBackend",
    "create_backend",
]
