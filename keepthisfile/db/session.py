from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker


def create_engine(database_url: str, **kwargs) -> AsyncEngine:
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://")
    return create_async_engine(database_url, future=True, **kwargs)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=AsyncSession
    )


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.sessionmaker() as session:
        yield session
