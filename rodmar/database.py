"""Database engine, session factory and declarative base"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from rodmar.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("postgresql+asyncpg"):
        return {"command_timeout": settings.DB_COMMAND_TIMEOUT}
    return {}


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base()


async def get_db():
    """FastAPI dependency yielding one session per request"""
    async with AsyncSessionLocal() as session:
        yield session


async def close_db():
    await engine.dispose()
