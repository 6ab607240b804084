"""
Database Session Management

Provides the async SQLAlchemy engine and session factory used by SqlStorage.
"""

from __future__ import annotations

from typing import Tuple

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)


def create_engine_and_sessionmaker(
    database_url: str,
) -> Tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """
    Build an async engine and its session factory.

    Pool sizing is left to the dialect defaults so that SQLite (aiosqlite)
    and PostgreSQL (asyncpg) URLs are both accepted.
    """
    engine = create_async_engine(
        database_url,
        echo=False,  # Set True for SQL debugging
        pool_pre_ping=True,
    )

    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, session_factory
