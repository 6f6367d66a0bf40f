import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

logger = logging.getLogger(__name__)


# Base class for all models
class Base(DeclarativeBase):
    pass


def get_async_db_url(url: str) -> str:
    """Ensure the database URL uses the asyncpg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def _engine_options(db_url: str) -> dict:
    """Pool and driver options; pooling arguments only apply to PostgreSQL."""
    if not db_url.startswith("postgresql"):
        return {"echo": settings.DATABASE_ECHO}
    return {
        "echo": settings.DATABASE_ECHO,
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_POOL_OVERFLOW,
        "pool_timeout": settings.DATABASE_POOL_TIMEOUT,
        "pool_pre_ping": True,  # Verify connections are alive before using
        "pool_recycle": 300,
        "connect_args": {
            "statement_cache_size": 0,  # Disable server-side prepared statement cache
            "command_timeout": settings.DATABASE_QUERY_TIMEOUT,
        },
    }


db_url = get_async_db_url(str(settings.DATABASE_URL))
# asyncpg rejects libpq-style query parameters such as sslmode
if db_url.startswith("postgresql") and "?" in db_url:
    db_url = db_url.split("?")[0]

engine = create_async_engine(db_url, **_engine_options(db_url))


AsyncSessionFactory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


async def get_db_session() -> AsyncSession:
    """Dependency to get a request-scoped database session."""
    async with AsyncSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Create tables for every registered model."""
    # Importing the package registers all models with Base.metadata
    import app.domain.models  # noqa: F401

    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")


class DatabaseTransactionManager:
    """Manages a standalone session for scripts running outside a request."""

    def __init__(self):
        self.session = None

    async def __aenter__(self):
        self.session = AsyncSessionFactory()
        return self.session

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None:
                await self.session.rollback()
            else:
                await self.session.commit()
        finally:
            await self.session.close()
