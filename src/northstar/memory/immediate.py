"""Rolling window of the most recent messages."""

from __future__ import annotations

from collections import deque

from northstar.memory.types import Message

DEFAULT_WINDOW = 5


def format_message(message: Message) -> str:
    return f"{message.role.upper()}: {message.content}"


class ImmediateContext:
    """Last N messages, always included in a handoff."""

    def __init__(self, window: int = DEFAULT_WINDOW) -> None:
        self._messages: deque[Message] = deque(maxlen=window)

    def add(self, message: Message) -> None:
        self._messages.append(message)

    def messages(self) -> list[Message]:
        return list(self._messages)

    def render(self) -> str:
        return "\n\n".join(format_message(m) for m in self._messages)

    def clear(self) -> None:
        self._messages.clear()
