from typing import Callable

from dependency_injector import containers, providers
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from reconciler.infrastructure.event_store import RedisEventStore
from reconciler.infrastructure.unit_of_work import UnitOfWork


class InfrastructureContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    async_engine = providers.Singleton[AsyncEngine](
        create_async_engine,
        config.db.dsn,
        pool_size=config.db.pool_size,
        pool_recycle=config.db.pool_recycle,
        future=True,
    )
    session_factory: Callable[..., AsyncSession] = providers.Factory(
        sessionmaker, async_engine, expire_on_commit=False, class_=AsyncSession
    )
    unit_of_work = providers.Singleton[UnitOfWork](
        UnitOfWork, session_factory=session_factory
    )
    redis_client = providers.Singleton[Redis](
        Redis.from_url,
        config.redis.url,
        decode_responses=True,
    )
    event_store = providers.Singleton[RedisEventStore](
        RedisEventStore,
        redis=redis_client,
        queue_key=config.redis.queue_key,
        key_prefix=config.redis.key_prefix,
        payload_ttl=config.redis.payload_ttl,
    )
