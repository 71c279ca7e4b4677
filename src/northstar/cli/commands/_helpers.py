"""Shared helpers for session CLI commands."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import typer

from northstar.cli.console import error
from northstar.config import ConfigError, NorthStarConfig, load_config
from northstar.memory.embeddings import create_embedding_provider
from northstar.memory.session import MemorySession
from northstar.storage import create_backend


def get_config(path: Path | None) -> NorthStarConfig:
    """Load config or exit with a readable error."""
    try:
        return load_config(path)
    except (FileNotFoundError, ConfigError) as e:
        error(str(e))
        raise typer.Exit(1) from None


@asynccontextmanager
async def open_session(config: NorthStarConfig) -> AsyncIterator[MemorySession]:
    """Session restored from the configured backend, closed on exit."""
    session = MemorySession(
        create_embedding_provider(config.embeddings),
        config=config,
        backend=create_backend(config.storage),
    )
    try:
        await session.load()
        yield session
    finally:
        await session.close()
