from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from .config import settings


def build_engine(url: str):
    # SQLite files are opened per connection; pooling them across event loops breaks
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False, future=True, poolclass=NullPool)
    return create_async_engine(
        url,
        echo=False,
        future=True,
        pool_pre_ping=True,
    )


engine = build_engine(settings.DATABASE_URL)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Async session generator.
    Used as Depends(get_db) in routers.
    """
    async with AsyncSessionLocal() as session:
        yield session
