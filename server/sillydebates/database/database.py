from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from sillydebates.database.models import Base
from sillydebates import config
import logging

logger = logging.getLogger(__name__)


def create_engine(database_url: str = None, **kwargs) -> AsyncEngine:
    url = database_url or config.DATABASE_URL
    kwargs.setdefault("echo", config.DATABASE_ECHO)
    if url.startswith("postgresql"):
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_item(session: AsyncSession, item_data: dict, model_class):
    try:
        db_item = model_class(**item_data)
        session.add(db_item)
        await session.commit()
        await session.refresh(db_item)
        return db_item
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Error creating {model_class.__name__}: {e}")
        return None


async def get_items_by_filters(
    session: AsyncSession,
    model_class,
    skip: int = 0,
    limit: int = 100,
    **filters,
) -> list:
    stmt = select(model_class)
    for column_name, value in filters.items():
        if hasattr(model_class, column_name):
            stmt = stmt.where(getattr(model_class, column_name) == value)
        else:
            logger.warning(
                f"Filter key '{column_name}' not found in model {model_class.__name__}"
            )

    stmt = stmt.offset(skip).limit(limit)
    result = await session.execute(stmt)
    return result.scalars().all()


async def create_all_tables(engine: AsyncEngine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
