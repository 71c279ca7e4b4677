"""Detection and tracking of key conversation moments."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Any

from northstar.errors import NotFound
from northstar.memory.types import Highlight, HighlightType

logger = logging.getLogger(__name__)

MAX_MILESTONES = 5

HIGHLIGHT_PATTERNS: tuple[tuple[HighlightType, tuple[re.Pattern[str], ...]], ...] = (
    (
        HighlightType.DECISION,
        tuple(
            re.compile(p, re.IGNORECASE)
            for p in (
                r"let's (use|go with|choose|pick|implement|adopt) (.+)",
                r"we('ll| will| should) (use|go with|implement) (.+)",
                r"decided to (.+)",
                r"decision:?\s*(.+)",
            )
        ),
    ),
    (
        HighlightType.BLOCKER,
        tuple(
            re.compile(p, re.IGNORECASE)
            for p in (
                r"error:?\s*(.+)",
                r"exception:?\s*(.+)",
                r"failed:?\s*(.+)",
                r"cannot (.+)",
                r"unable to (.+)",
                r"blocked:?\s*(.+)",
                r"issue:?\s*(.+)",
            )
        ),
    ),
    (
        HighlightType.SOLUTION,
        tuple(
            re.compile(p, re.IGNORECASE)
            for p in (
                r"fixed (by|with|using) (.+)",
                r"solved (by|with) (.+)",
                r"the (fix|solution) (is|was) (.+)",
                r"resolved:?\s*(.+)",
                r"working now",
            )
        ),
    ),
    (
        HighlightType.MILESTONE,
        tuple(
            re.compile(p, re.IGNORECASE)
            for p in (
                r"✓\s*(.+)",
                r"done:?\s*(.+)",
                r"completed:?\s*(.+)",
                r"finished:?\s*(.+)",
                r"tests? (are )?(passing|passed)",
                r"successfully (.+)",
            )
        ),
    ),
)


class HighlightExtractor:
    """Auto-detects decisions, blockers, solutions and milestones.

    At most one highlight per type per message: the first matching pattern
    wins and the highlight keeps the whole matched phrase.
    """

    def __init__(self) -> None:
        self._highlights: list[Highlight] = []

    def extract(self, text: str, message_index: int) -> list[Highlight]:
        extracted: list[Highlight] = []
        for highlight_type, patterns in HIGHLIGHT_PATTERNS:
            for pattern in patterns:
                match = pattern.search(text)
                if match:
                    extracted.append(
                        Highlight(
                            type=highlight_type,
                            content=match.group(0).strip(),
                            message_index=message_index,
                        )
                    )
                    break
        self._highlights.extend(extracted)
        return extracted

    def mark(
        self,
        content: str,
        message_index: int,
        highlight_type: HighlightType = HighlightType.USER_MARKED,
    ) -> Highlight:
        """Record a highlight chosen by the user."""
        highlight = Highlight(
            type=highlight_type, content=content, message_index=message_index
        )
        self._highlights.append(highlight)
        return highlight

    def resolve(self, highlight_id: str) -> Highlight:
        for idx, highlight in enumerate(self._highlights):
            if highlight.id == highlight_id:
                resolved = highlight.model_copy(update={"resolved": True})
                self._highlights[idx] = resolved
                return resolved
        raise NotFound(f"highlight not found: {highlight_id}")

    def all(self) -> list[Highlight]:
        return list(self._highlights)

    def decisions(self) -> list[Highlight]:
        return [h for h in self._highlights if h.type == HighlightType.DECISION]

    def unresolved_blockers(self) -> list[Highlight]:
        return [
            h
            for h in self._highlights
            if h.type == HighlightType.BLOCKER and not h.resolved
        ]

    def milestones(self, limit: int = MAX_MILESTONES) -> list[Highlight]:
        found = [h for h in self._highlights if h.type == HighlightType.MILESTONE]
        return found[-limit:] if limit > 0 else []

    def render(self) -> str:
        """Markdown for context injection; empty when nothing to say."""
        return "\n\n".join(self.sections())

    def sections(self) -> list[str]:
        """Rendered markdown sections, most important first."""
        sections: list[str] = []

        decisions = self.decisions()
        if decisions:
            lines = [f"{i}. {d.content}" for i, d in enumerate(decisions, 1)]
            sections.append("## Key Decisions\n" + "\n".join(lines))

        blockers = self.unresolved_blockers()
        if blockers:
            lines = [f"- {b.content}" for b in blockers]
            sections.append("## Open Issues\n" + "\n".join(lines))

        milestones = self.milestones()
        if milestones:
            lines = [f"- {m.content}" for m in milestones]
            sections.append("## Recent Milestones\n" + "\n".join(lines))

        return sections

    def clear(self) -> None:
        self._highlights.clear()

    def dump(self) -> list[dict[str, Any]]:
        return [h.model_dump(mode="json") for h in self._highlights]

    def load(self, raw: Iterable[dict[str, Any]]) -> None:
        self._highlights = [Highlight.model_validate(d) for d in raw]
        logger.debug("Loaded %d highlights", len(self._highlights))
