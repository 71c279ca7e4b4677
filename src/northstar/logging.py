"""Logging setup for North Star.

Entry points (the CLI, or a host application embedding the engine) call
configure_logging() once at startup. Library modules only ever do
``logger = logging.getLogger(__name__)``.

Degraded operation is logged as an event name with dotted ``extra=``
fields, for example::

    logger.warning(
        "vector_search_unavailable", extra={"error.message": str(e)}
    )

The file log turns each dotted prefix (``node``, ``vector``, ``message``,
``provider``, ``handoff``, ``file``, ``error``) into a top-level object, so
``provider.to`` is written as ``{"provider": {"to": ...}}``.
"""

import json
import logging
import os
import re
from datetime import UTC, datetime
from logging.handlers import TimedRotatingFileHandler
from typing import Any

LOG_LEVEL_ENV_VAR = "NORTHSTAR_LOG_LEVEL"
LOG_FILE_NAME = "northstar.jsonl"

# Rotated daily; this many days are kept.
DEFAULT_LOG_RETENTION_DAYS = 7

EVENT_NAMESPACES = frozenset(
    {"node", "vector", "message", "provider", "handoff", "file", "error"}
)

# Conversation text reaches the logs through error messages and the
# embedding client, so mask the API keys that text is likely to carry.
REDACT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(sk-[A-Za-z0-9_-]{20,})"),
    re.compile(r"\bBearer\s+([A-Za-z0-9._\-+=]{20,})", re.IGNORECASE),
    re.compile(
        r"\b[A-Z0-9_]*(?:API_KEY|TOKEN|SECRET)\s*[=:]\s*([^\s\"']{8,})",
        re.IGNORECASE,
    ),
)


def redact(text: str) -> str:
    """Mask API keys in ``text``, keeping their first four characters."""
    for pattern in REDACT_PATTERNS:
        text = pattern.sub(_mask, text)
    return text


def _mask(match: re.Match[str]) -> str:
    secret = match.group(1)
    return match.group(0).replace(secret, f"{secret[:4]}***")


def component_name(logger_name: str) -> str:
    """Short component for a logger path: northstar.graph.vectors -> graph."""
    parts = logger_name.split(".")
    if len(parts) >= 2 and parts[0] == "northstar":
        return parts[1]
    return parts[0]


def event_fields(record: logging.LogRecord) -> dict[str, dict[str, Any]]:
    """Group a record's dotted ``extra=`` fields by namespace."""
    fields: dict[str, dict[str, Any]] = {}
    for key, value in record.__dict__.items():
        namespace, _, attr = key.partition(".")
        if attr and namespace in EVENT_NAMESPACES:
            if isinstance(value, str):
                value = redact(value)
            fields.setdefault(namespace, {})[attr] = value
    return fields


class JSONLFormatter(logging.Formatter):
    """One JSON object per record: time, level, component, event, fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "component": component_name(record.name),
            "event": redact(record.getMessage()),
        }
        entry.update(event_fields(record))
        if record.exc_info:
            entry["exception"] = redact(self.formatException(record.exc_info))
        return json.dumps(entry, default=str)


class ComponentFormatter(logging.Formatter):
    """Console formatter exposing ``%(component)s`` (graph, memory, storage)."""

    def format(self, record: logging.LogRecord) -> str:
        record.component = component_name(record.name)
        return super().format(record)


# Third-party loggers that are too noisy at INFO level
NOISY_LOGGERS = [
    "httpx",  # HTTP client used by OpenAI
    "httpcore",
    "openai",
    "aiosqlite",  # logs every operation at DEBUG
]


def create_file_handler(
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
) -> logging.Handler:
    """JSONL handler writing to <home>/logs, rotated at UTC midnight."""
    from northstar.config.paths import get_logs_path

    logs_dir = get_logs_path()
    logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        logs_dir / LOG_FILE_NAME,
        when="midnight",
        backupCount=retention_days,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(JSONLFormatter())
    return handler


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
    log_to_file: bool = False,
) -> None:
    """Configure logging for North Star.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
            If None, uses NORTHSTAR_LOG_LEVEL env var or INFO.
        use_rich: Use Rich handler for console output.
        log_to_file: Also write JSONL event logs to <home>/logs/.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")
    level = level.upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        level = "INFO"
    log_level = getattr(logging, level)

    if use_rich:
        from rich.logging import RichHandler

        console_handler: logging.Handler = RichHandler(
            show_path=False,
            markup=False,
        )
        console_handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            ComponentFormatter(
                "%(asctime)s | %(levelname)-8s | %(component)s | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
    handlers = [console_handler]

    if log_to_file:
        handlers.append(create_file_handler())

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
