"""Async SQLAlchemy engine and session factory used by SqlStore.

Sessions are opened per store transaction; nothing else holds one. The engine
is created lazily by the driver, so importing this module with
STORE_BACKEND=memory never opens a connection.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
    pool_pre_ping=True,
)

# SqlStore returns plain dataclasses, so nothing relies on attribute refresh
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)
