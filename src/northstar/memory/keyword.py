"""Keyword search over recorded messages.

Fallback for when hybrid retrieval comes back empty (no embeddings yet, or
the embedding provider is down). Scores are a crude BM25 stand-in: one
point per keyword substring hit plus a bonus for whole-word hits.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from northstar.memory.types import Message

STOP_WORDS = frozenset({"the", "and", "for", "that", "this", "with", "you", "are"})
MIN_KEYWORD_LENGTH = 3


@dataclass
class KeywordHit:
    content: str
    score: float
    timestamp: datetime


def tokenize(text: str) -> list[str]:
    """Lower-cased keywords without punctuation, short words or stop words."""
    cleaned = re.sub(r"[^\w\s]", "", text.lower())
    return [
        w for w in cleaned.split() if len(w) >= MIN_KEYWORD_LENGTH and w not in STOP_WORDS
    ]


def score_content(content: str, keywords: list[str]) -> float:
    lowered = content.lower()
    score = 0.0
    for keyword in keywords:
        if keyword in lowered:
            score += 1.0
        if re.search(rf"\b{re.escape(keyword)}\b", lowered):
            score += 0.5
    return score


class KeywordSearch:
    def __init__(self) -> None:
        self._messages: list[Message] = []

    def add(self, message: Message) -> None:
        self._messages.append(message)

    def load(self, messages: list[Message]) -> None:
        self._messages = list(messages)

    def clear(self) -> None:
        self._messages.clear()

    def search(self, query: str, limit: int = 10) -> list[KeywordHit]:
        keywords = tokenize(query)
        if not keywords:
            return []
        hits = [
            KeywordHit(m.content, score, m.timestamp)
            for m in self._messages
            if (score := score_content(m.content, keywords)) > 0
        ]
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]
