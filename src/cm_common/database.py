"""Async engine and per-request sessions for the settlement store.

Wallets, transactions, orders and gigs all live in one PostgreSQL database.
Checkout and every escrow move run as a single transaction on one session,
taking ``FOR UPDATE`` row locks at the engine's isolation level
(``DB_ISOLATION_LEVEL``, REPEATABLE READ by default). A lost race surfaces
as SQLSTATE 40001 and is mapped to a retryable 409 in ``src.main``.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings


class Base(DeclarativeBase):
    """Declarative base for the table mirrors in ``*/infrastructure/db_models.py``."""


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    isolation_level=settings.DB_ISOLATION_LEVEL,
    pool_size=20,
    max_overflow=10,
)

# expire_on_commit=False: services read returned rows after commit to notify
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; services own commit and rollback."""
    async with async_session_factory() as session:
        yield session
