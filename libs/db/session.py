from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from libs.db.config import AsyncSessionLocal


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; services commit or roll back their own unit of work."""
    async with AsyncSessionLocal() as session:
        yield session
