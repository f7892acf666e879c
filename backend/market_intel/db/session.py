from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from market_intel.config import get_settings

settings = get_settings()

engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def create_task_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for Celery tasks.

    Each task runs its own event loop via asyncio.run, so pooled asyncpg
    connections from the module-level engine cannot be shared across runs.
    """
    task_engine = create_async_engine(settings.database_url, poolclass=NullPool)
    return async_sessionmaker(task_engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncSession:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
