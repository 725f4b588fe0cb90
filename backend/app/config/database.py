"""
Database connection
---------------------------------
Features:
- Builds the async SQLAlchemy engine from `DATABASE_URL`
- Provides the session factory
- Provides the dependency used by routers

Usage:
- In a router: `db: AsyncSession = Depends(get_db)`
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from .settings import DATABASE_URL, DB_POOL_TIMEOUT


def _engine_options(url: str) -> dict:
    """SQLite (tests, local runs) gets no pool; server databases get a bounded one."""
    if url.startswith("sqlite"):
        return {"poolclass": NullPool}
    return {
        "pool_pre_ping": True,   # drop dead connections before use
        "pool_recycle": 3600,    # seconds
        "pool_timeout": DB_POOL_TIMEOUT,
    }


engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    future=True,
    **_engine_options(DATABASE_URL),
)

AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
)


async def get_db():
    """
    Dependency: yield a database session

    Example:
    @router.get("/example")
    async def example(db: AsyncSession = Depends(get_db)):
        ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
