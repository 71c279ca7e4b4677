"""Token estimation and per-provider context budgets."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

# ~4 chars per token is a reasonable approximation for English
CHARS_PER_TOKEN = 4

# Tokens reserved for injected memory, not the provider's whole window
DEFAULT_PROVIDER_BUDGETS: dict[str, int] = {
    "claude": 15000,  # ~7.5% of 200K
    "gemini": 50000,  # ~5% of 1M
    "openai": 10000,  # ~8% of 128K
}
DEFAULT_BUDGET = 8000

DEFAULT_ALLOCATION: dict[str, float] = {
    "objectives": 0.125,
    "immediate": 0.25,
    "highlights": 0.1875,
    "graph": 0.25,
    "vector": 0.1875,
}


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate token count as ceil(len / chars_per_token).

    Not a tokenizer. Deterministic and monotonic in length, which is all
    the budget-fit decisions need.
    """
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


@dataclass(frozen=True)
class BudgetAllocation:
    """Token split of a provider's memory budget across context sections."""

    total: int
    objectives: int
    immediate: int
    highlights: int
    graph: int
    vector: int

    @property
    def retrieval(self) -> int:
        """Tokens available to hybrid retrieval (graph + vector)."""
        return self.graph + self.vector


class TokenBudget:
    """Per-provider budget table and text-to-token accounting."""

    def __init__(
        self,
        provider_budgets: Mapping[str, int] | None = None,
        default_budget: int = DEFAULT_BUDGET,
        allocation: Mapping[str, float] | None = None,
        chars_per_token: int = CHARS_PER_TOKEN,
    ) -> None:
        self._budgets = dict(
            DEFAULT_PROVIDER_BUDGETS if provider_budgets is None else provider_budgets
        )
        self._default = default_budget
        self._weights = dict(DEFAULT_ALLOCATION if allocation is None else allocation)
        self._chars_per_token = chars_per_token

    @property
    def weights(self) -> dict[str, float]:
        return dict(self._weights)

    def budget_for(self, provider_id: str) -> int:
        """Memory budget for a provider; unknown providers get the default."""
        return self._budgets.get(provider_id, self._default)

    def allocate(self, provider_id: str) -> BudgetAllocation:
        """Split the provider budget by the fixed section weights (floored)."""
        total = self.budget_for(provider_id)
        return BudgetAllocation(
            total=total,
            **{
                section: math.floor(total * weight)
                for section, weight in self._weights.items()
            },
        )

    def count_tokens(self, text: str) -> int:
        return estimate_tokens(text, self._chars_per_token)

    def fit_to_budget(self, items: Iterable[str], budget: int) -> list[str]:
        """Longest prefix of ``items`` whose summed token count stays <= budget.

        Stops at the first item that would overflow; later, smaller items
        are never pulled forward.
        """
        result: list[str] = []
        remaining = budget
        for item in items:
            tokens = self.count_tokens(item)
            if tokens > remaining:
                break
            result.append(item)
            remaining -= tokens
        return result
