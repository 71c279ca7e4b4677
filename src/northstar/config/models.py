"""Configuration models using Pydantic."""

import logging
import math
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, field_validator

from northstar.config.paths import get_data_path
from northstar.core.tokens import (
    CHARS_PER_TOKEN,
    DEFAULT_ALLOCATION,
    DEFAULT_BUDGET,
    DEFAULT_PROVIDER_BUDGETS,
    TokenBudget,
)

logger = logging.getLogger(__name__)


class EmbeddingsConfig(BaseModel):
    """Configuration for the embedding model.

    Embeddings back the vector half of hybrid retrieval. Currently only
    OpenAI embeddings are supported.
    """

    provider: Literal["openai"] = "openai"
    model: str = "text-embedding-3-small"
    dimensions: int = Field(default=384, gt=0)
    timeout: float = Field(default=10.0, gt=0)
    api_key: SecretStr | None = None


class BudgetConfig(BaseModel):
    """Token budgets reserved for injected memory, per provider."""

    chars_per_token: int = Field(default=CHARS_PER_TOKEN, gt=0)
    default_budget: int = Field(default=DEFAULT_BUDGET, ge=0)
    providers: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_PROVIDER_BUDGETS)
    )
    allocation: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_ALLOCATION)
    )

    @field_validator("allocation")
    @classmethod
    def _check_allocation(cls, value: dict[str, float]) -> dict[str, float]:
        missing = set(DEFAULT_ALLOCATION) - set(value)
        if missing:
            raise ValueError(f"allocation missing sections: {', '.join(sorted(missing))}")
        unknown = set(value) - set(DEFAULT_ALLOCATION)
        if unknown:
            raise ValueError(f"unknown allocation sections: {', '.join(sorted(unknown))}")
        if any(w < 0 for w in value.values()):
            raise ValueError("allocation weights must be non-negative")
        if not math.isclose(sum(value.values()), 1.0, abs_tol=1e-6):
            raise ValueError("allocation weights must sum to 1.0")
        return value

    def build(self) -> TokenBudget:
        return TokenBudget(
            provider_budgets=self.providers,
            default_budget=self.default_budget,
            allocation=self.allocation,
            chars_per_token=self.chars_per_token,
        )


class RetrievalConfig(BaseModel):
    """Hybrid retrieval tuning."""

    rrf_k: int = Field(default=60, gt=0)
    vector_k: int = Field(default=10, ge=0)
    graph_depth: int = Field(default=2, ge=0)
    recent_window: int = Field(default=10, ge=0)


class StorageConfig(BaseModel):
    """Where session state is persisted."""

    backend: Literal["memory", "jsonl", "sqlite"] = "jsonl"
    path: Path = Field(default_factory=get_data_path)


class SessionConfig(BaseModel):
    """Conversation-level settings."""

    immediate_window: int = Field(default=5, gt=0)
    max_saved_messages: int = Field(default=100, gt=0)
    default_provider: str = "claude"


class NorthStarConfig(BaseModel):
    """Root configuration model."""

    embeddings: EmbeddingsConfig = Field(default_factory=EmbeddingsConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
