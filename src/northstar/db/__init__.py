"""ORM tables for the SQLite backend."""

from northstar.db.models import Base, EdgeRow, KVRow, NodeRow, VectorRow

__all__ = ["Base", "EdgeRow", "KVRow", "NodeRow", "VectorRow"]
