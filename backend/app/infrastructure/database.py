from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from backend.app.config import get_settings
from backend.app.logging_config import get_logger

logger = get_logger("app.infrastructure.database")
settings = get_settings()


def normalize_database_url(url: str) -> str:
    """Point plain postgres URLs at the async psycopg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgres://"):
        # Handle Neon/Heroku-style URLs
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


db_url = normalize_database_url(settings.database_url)

engine_options: dict[str, Any] = {"echo": False, "future": True, "pool_pre_ping": True}
if not db_url.startswith("sqlite"):
    engine_options.update(
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,  # Recycle connections after 30 minutes
    )

engine = create_async_engine(db_url, **engine_options)

AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


class Base(DeclarativeBase):
    pass


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def check_database_connectivity() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connectivity check passed")
        return True
    except Exception as e:
        logger.error(f"Database connectivity check failed: {e}")
        return False
