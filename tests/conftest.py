"""Shared test fixtures and fake embedding providers."""

from __future__ import annotations

import asyncio
import hashlib
import re
from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest

from northstar.config.models import NorthStarConfig, StorageConfig
from northstar.graph.graph import EntityStore
from northstar.graph.vectors import VectorIndex
from northstar.memory.session import MemorySession
from northstar.storage.memory import InMemoryBackend

FAKE_DIMENSIONS = 64

# =============================================================================
# Embedding Providers
# =============================================================================


class FakeEmbedder:
    """Deterministic bag-of-words embedding.

    Each lower-cased word is hashed into one of ``dimensions`` buckets, so
    texts sharing words have positive cosine similarity and texts sharing
    none score 0.0.
    """

    def __init__(self, dimensions: int = FAKE_DIMENSIONS) -> None:
        self._dimensions = dimensions
        self.calls: list[str] = []

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        vector = [0.0] * self._dimensions
        for word in re.findall(r"\w+", text.lower()):
            digest = hashlib.md5(word.encode()).digest()
            vector[int.from_bytes(digest[:4], "big") % self._dimensions] += 1.0
        return vector


class MappedEmbedder:
    """Returns fixed vectors for known texts (zero vector otherwise)."""

    def __init__(self, vectors: dict[str, list[float]], dimensions: int = 3) -> None:
        self._vectors = vectors
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        return list(self._vectors.get(text, [0.0] * self._dimensions))


class FailingEmbedder:
    def __init__(self, dimensions: int = FAKE_DIMENSIONS) -> None:
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        raise RuntimeError("embedding service down")


class SlowEmbedder:
    def __init__(self, delay: float = 1.0, dimensions: int = FAKE_DIMENSIONS) -> None:
        self._delay = delay
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        await asyncio.sleep(self._delay)
        return [1.0] * self._dimensions


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def failing_embedder() -> FailingEmbedder:
    return FailingEmbedder()


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def store() -> EntityStore:
    return EntityStore()


@pytest.fixture
def vectors(embedder: FakeEmbedder) -> VectorIndex:
    return VectorIndex(embedder)


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path: Path) -> NorthStarConfig:
    """Default configuration with storage under tmp_path."""
    return NorthStarConfig(storage=StorageConfig(backend="jsonl", path=tmp_path / "data"))


@pytest.fixture
def config_toml_factory(tmp_path: Path) -> Callable[[str], Path]:
    """Write a northstar.toml into tmp_path and return its path."""

    def _write(content: str) -> Path:
        path = tmp_path / "northstar.toml"
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def cli_config_path(tmp_path: Path) -> Path:
    """Config file pointing JSONL storage at tmp_path."""
    path = tmp_path / "cli.toml"
    path.write_text(
        f"""
[storage]
backend = "jsonl"
path = "{(tmp_path / "cli-data").as_posix()}"
"""
    )
    return path


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
async def session(
    embedder: FakeEmbedder, config: NorthStarConfig
) -> AsyncGenerator[MemorySession, None]:
    s = MemorySession(embedder, config=config, backend=InMemoryBackend())
    yield s
    await s.close()


# =============================================================================
# CLI Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})


@pytest.fixture
def fake_cli_embedder(monkeypatch: pytest.MonkeyPatch) -> FakeEmbedder:
    """Route CLI sessions to a FakeEmbedder instead of OpenAI."""
    fake = FakeEmbedder()
    monkeypatch.setattr(
        "northstar.cli.commands._helpers.create_embedding_provider",
        lambda _config: fake,
    )
    return fake
