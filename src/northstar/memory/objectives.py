"""Tracks the user's objectives and sub-goals across the conversation."""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from typing import Any

from northstar.errors import NotFound
from northstar.graph.types import utc_now
from northstar.memory.types import Objective, ObjectiveStatus

OBJECTIVE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"i want to ((?:build|create|make|implement|develop) .+)",
        r"let's ((?:build|create|make|implement|develop) .+)",
        r"goal is to (.+)",
        r"objective is (.+)",
        r"need to (.+)",
    )
)


class ObjectiveTracker:
    def __init__(self) -> None:
        self._objectives: list[Objective] = []

    def add(self, statement: str, parent_id: str | None = None) -> Objective:
        """Add a top-level objective, or a sub-objective under ``parent_id``.

        Raises:
            NotFound: If ``parent_id`` is given and does not exist.
        """
        objective = Objective(statement=statement)
        if parent_id is None:
            self._objectives.append(objective)
        else:
            self.get(parent_id).sub_objectives.append(objective)
        return objective

    def get(self, objective_id: str) -> Objective:
        for objective in self._walk(self._objectives):
            if objective.id == objective_id:
                return objective
        raise NotFound(f"objective not found: {objective_id}")

    def update_status(self, objective_id: str, status: ObjectiveStatus) -> Objective:
        objective = self.get(objective_id)
        objective.status = status
        objective.updated_at = utc_now()
        return objective

    def link_decision(self, objective_id: str, decision_id: str) -> None:
        objective = self.get(objective_id)
        if decision_id not in objective.related_decisions:
            objective.related_decisions.append(decision_id)

    def current(self) -> list[Objective]:
        """Active top-level objectives."""
        return [o for o in self._objectives if o.status == ObjectiveStatus.ACTIVE]

    def all(self) -> list[Objective]:
        return list(self._objectives)

    def extract(self, text: str) -> Objective | None:
        """Create an objective from the first goal phrase in ``text``."""
        for pattern in OBJECTIVE_PATTERNS:
            match = pattern.search(text)
            if match:
                return self.add(match.group(1).strip())
        return None

    def clear(self) -> None:
        self._objectives.clear()

    def dump(self) -> list[dict[str, Any]]:
        return [o.model_dump(mode="json") for o in self._objectives]

    def load(self, raw: Iterable[dict[str, Any]]) -> None:
        self._objectives = [Objective.model_validate(d) for d in raw]

    def _walk(self, objectives: list[Objective]) -> Iterator[Objective]:
        for objective in objectives:
            yield objective
            yield from self._walk(objective.sub_objectives)
