"""Database engine, session factory, and declarative base.

All tables live in one schema.  The request-scoped session from get_db()
wraps the whole request in a single transaction: a production entry write
and the lot ledger adjustment it triggers commit together or not at all.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from looms.config import settings


def build_engine(url: str, echo: bool = False):
    """Create an async engine; SQLite URLs share a single connection."""
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(
        url,
        echo=echo,
        pool_size=20,
        max_overflow=10,
    )


engine = build_engine(settings.database_url, echo=settings.debug)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Yield a session; commit on success, roll back on any error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
