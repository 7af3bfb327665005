from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

import logging

from . import config
# register tables on SQLModel.metadata before create_all runs
from . import models  # noqa: F401

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL

# NullPool: every session opens its own connection, which keeps sqlite from
# holding connections across event loops in tests.
engine = create_async_engine(DATABASE_URL, echo=False, future=True, poolclass=NullPool)

async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info('database initialized url=%s', DATABASE_URL)


async def reset_db():
    """Drop and recreate every table. Used by tests and local resets."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info('database reset url=%s', DATABASE_URL)
