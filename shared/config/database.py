from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from shared.config.settings import StoreConfig

Base = declarative_base()


def create_engine_from_config(config: StoreConfig) -> AsyncEngine:
    """Builds the async engine. The pool bounds concurrent handles on the store."""
    kwargs = {"echo": config.echo, "pool_pre_ping": True}
    # SQLite picks its own pool class (StaticPool for :memory:), which takes no size
    if not config.url.startswith("sqlite"):
        kwargs["pool_size"] = config.pool_size
    return create_async_engine(config.url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
