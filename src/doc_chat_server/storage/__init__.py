"""
Storage Package

The persistence interface used by the API, the realtime gateway and the
document worker, with in-memory and SQL implementations.
"""

from .base import Storage
from .memory import MemoryStorage
from .models import ChatSession, Document, DocumentStatus, Message, User
from .sql import SqlStorage

__all__ = [
    "Storage",
    "MemoryStorage",
    "SqlStorage",
    "ChatSession",
    "Document",
    "DocumentStatus",
    "Message",
    "User",
]
