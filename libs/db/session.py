from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from libs.db.config import AsyncSessionLocal


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that yields an async database session.

    Handlers own their commits; anything left uncommitted is rolled back when
    the session closes.
    """
    async with AsyncSessionLocal() as session:
        yield session
