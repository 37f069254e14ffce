from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from appointment_engine.config import settings


# Create async engine (shared by the scheduler jobs)
# Set echo=False to disable SQL query logging (too verbose for sweeps)
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> AsyncIterator[AsyncSession]:
    """Open a session that commits on success and rolls back on failure."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Initialize database tables."""
    # Models must be imported so they register on Base.metadata
    from appointment_engine import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections."""
    await engine.dispose()
