"""North Star: hybrid graph + vector memory for multi-provider conversations."""

__version__ = "0.1.0"
