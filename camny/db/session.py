from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from camny.config import settings


DATABASE_URL = str(settings.DATABASE_URL)

# expected alembic revision; bump together with a new migration
SCHEMA_REVISION = "0001_initial"

# create async engine
engine = create_async_engine(DATABASE_URL, echo=settings.DEBUG, future=True)

# session factory
async_session = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:  # to be used as dependency
    async with async_session() as session:
        yield session


def get_session_factory() -> async_sessionmaker:
    """Factory handed to services that fan work out over independent sessions."""
    return async_session


class SchemaVersionError(RuntimeError):
    pass


async def verify_schema(bind: AsyncEngine = engine, expected: str = SCHEMA_REVISION) -> str:
    """Check the database is at the migration revision this code was written against."""
    async with bind.connect() as conn:
        try:
            res = await conn.execute(text("SELECT version_num FROM alembic_version"))
        except SQLAlchemyError as exc:
            raise SchemaVersionError("alembic_version table missing; run `alembic upgrade head`") from exc
        current = res.scalar()
    if current != expected:
        raise SchemaVersionError(f"database schema at {current!r}, expected {expected!r}")
    return current
