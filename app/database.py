"""
Database connection and session management.
Handles the SQLAlchemy async engine and session factory.
"""
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from sqlalchemy.sql import func
from typing import AsyncGenerator
import logging

from app.config import settings

logger = logging.getLogger(__name__)

# Create async engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,  # Set to True for SQL query logging
    future=True,
    pool_pre_ping=True,
    poolclass=NullPool,  # Use NullPool for better async compatibility
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Base class for ORM models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function to get database session.

    Yields:
        AsyncSession: Database session

    Example:
        @app.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Initialize database tables.
    Creates all tables defined in Base metadata.
    """
    try:
        async with engine.begin() as conn:
            # Import all models to ensure they're registered
            from app.models import database_models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created/verified")

    except Exception as e:
        logger.error(f"Error initializing database: {e}")
        raise


async def fail_interrupted_jobs() -> int:
    """
    Mark jobs left in ``pending``/``processing`` by a previous process as failed.

    Background runs live in process memory, so after a restart nothing will
    ever move those jobs to a terminal state.  Returns the number of jobs
    updated.
    """
    from app.models.database_models import GenerationJob, JobStatus

    async with AsyncSessionLocal() as session:
        result = await session.execute(
            update(GenerationJob)
            .where(GenerationJob.status.in_([JobStatus.PENDING, JobStatus.PROCESSING]))
            .values(
                status=JobStatus.FAILED,
                error_message="Generation interrupted by server restart",
                completed_at=func.now(),
            )
        )
        await session.commit()

    if result.rowcount:
        logger.warning("Marked %d interrupted job(s) as failed", result.rowcount)
    return result.rowcount or 0


async def close_db() -> None:
    """Close database connections gracefully."""
    try:
        await engine.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error closing database: {e}")
        raise
