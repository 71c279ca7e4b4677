"""CLI command modules."""

from northstar.cli.commands import session

__all__ = ["session"]
