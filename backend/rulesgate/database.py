"""Database engine, session factory, and declarative base.

The engine only exists when DATABASE_URL is configured.  Without it the
service runs in demo mode against the local JSON fallback store and
nothing in here is touched except `Base` (for Alembic).
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from rulesgate.config import settings


class Base(DeclarativeBase):
    """Models stored in the agreement backend."""
    pass


def is_database_configured() -> bool:
    return bool(settings.database_url)


engine: AsyncEngine | None = None
async_session: async_sessionmaker[AsyncSession] | None = None

if is_database_configured():
    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=10,
        max_overflow=5,
    )
    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
