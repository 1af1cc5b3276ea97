"""Database package"""

from rook.db.session import AsyncSessionLocal, engine, get_db
from rook.models.base import Base

__all__ = ["Base", "AsyncSessionLocal", "engine", "get_db"]
