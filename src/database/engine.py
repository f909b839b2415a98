"""Database engines: asyncpg for the API, psycopg2 for Celery workers."""

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from src.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_recycle=settings.db_pool_recycle_seconds,
    pool_pre_ping=True,
    echo=settings.db_echo,
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Outbox draining and notification writes run in sync worker processes
sync_engine = create_engine(
    settings.database_url_sync,
    pool_size=settings.worker_pool_size,
    pool_pre_ping=True,
)

sync_session = sessionmaker(sync_engine, class_=Session, expire_on_commit=False)
