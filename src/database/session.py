from collections.abc import AsyncGenerator, Iterator
from contextlib import contextmanager

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from src.database.engine import async_session, sync_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields a database session.

    The whole request is one unit of work: services only flush, the commit
    happens here once the endpoint returns.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@contextmanager
def worker_session() -> Iterator[Session]:
    """Sync session for Celery workers, committed on clean exit."""
    with sync_session() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
