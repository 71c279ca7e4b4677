"""Exception hierarchy for the North Star memory engine."""


class NorthStarError(Exception):
    """Base class for all North Star errors."""


class ValidationError(NorthStarError):
    """Unknown node/edge type or otherwise malformed graph input.

    Not a ValueError subclass: pydantic only wraps ValueError and
    AssertionError, so this propagates out of model validators unchanged.
    """


class EmbeddingUnavailable(NorthStarError):
    """The embedding provider failed, timed out, or returned a bad vector."""


class NotFound(NorthStarError):
    """An explicitly referenced id does not exist."""


class StorageError(NorthStarError):
    """A persistence backend could not write state."""


class ConfigError(NorthStarError):
    """Configuration error."""
