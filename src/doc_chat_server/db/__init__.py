"""
Database Package

Provides SQLAlchemy async session management and model definitions
for the durable storage backend.
"""

from .session import create_engine_and_sessionmaker
from .models import Base, UserRow, DocumentRow, ChatSessionRow, MessageRow

__all__ = [
    "create_engine_and_sessionmaker",
    "Base",
    "UserRow",
    "DocumentRow",
    "ChatSessionRow",
    "MessageRow",
]
