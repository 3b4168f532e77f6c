"""Database setup with SQLAlchemy async."""

from collections.abc import AsyncGenerator

from sqlalchemy import JSON, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from vendorsync.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=5,
    max_overflow=10,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Raw vendor payloads: JSONB on PostgreSQL, plain JSON elsewhere (tests)
JSONPayload = JSON().with_variant(postgresql.JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def upsert_statement(db: AsyncSession, entity):
    """
    Build an INSERT that supports ON CONFLICT for the session's dialect.

    PostgreSQL in production, SQLite in tests; both expose
    ``on_conflict_do_update`` and ``excluded``.
    """
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert(entity)
    return postgresql.insert(entity)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_db_ready() -> None:
    """
    Verify database connectivity and expected schema.

    Checks that the engine's bookkeeping tables exist.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))

        tables = await conn.execute(
            text(
                "SELECT "
                "to_regclass('public.sync_checkpoints') AS sync_checkpoints, "
                "to_regclass('public.retry_segments') AS retry_segments, "
                "to_regclass('public.report_jobs') AS report_jobs"
            )
        )
        row = tables.first()
        if row is None or any(value is None for value in row):
            missing = []
            if row is None or row.sync_checkpoints is None:
                missing.append("sync_checkpoints")
            if row is None or row.retry_segments is None:
                missing.append("retry_segments")
            if row is None or row.report_jobs is None:
                missing.append("report_jobs")

            raise RuntimeError(
                f"Database schema is missing tables: {', '.join(missing)} "
                "(run database init or check migrations)."
            )
