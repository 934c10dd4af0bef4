import logging
from contextlib import asynccontextmanager

from redis import exceptions as redis_exceptions
from redis.asyncio import Redis

from reconciler.core.models import SideTableEnum

logger = logging.getLogger(__name__)


class EventStoreUnavailable(Exception):
    pass


class RedisEventStore:
    """
    Webhook event store backed by Redis.

    Payloads live under their own key (the event id) and the ids are pushed to a list
    that acts as the work queue. A popped id is moved to a processing list until the
    worker acknowledges its disposition, so an id is never lost to an outage.
    Side tables are hashes keyed by event id.
    """

    def __init__(
        self,
        redis: Redis,
        queue_key: str = "webhook:queue:asaas",
        key_prefix: str = "webhook",
        payload_ttl: int = 86400,
    ):
        self._redis = redis
        self._queue_key = queue_key
        self._key_prefix = key_prefix
        self._payload_ttl = payload_ttl

    @property
    def processing_key(self) -> str:
        return f"{self._key_prefix}:processing"

    @property
    def queue_key(self) -> str:
        return self._queue_key

    def side_table_key(self, side_table: SideTableEnum) -> str:
        return f"{self._key_prefix}:{SideTableEnum(side_table)}"

    @asynccontextmanager
    async def _guard(self):
        try:
            yield
        except (redis_exceptions.ConnectionError, redis_exceptions.TimeoutError) as e:
            raise EventStoreUnavailable(f"Event store unreachable: {e}") from e

    async def blocking_pop(self, timeout: int) -> str | None:
        async with self._guard():
            return await self._redis.blmove(
                self._queue_key, self.processing_key, timeout, src="RIGHT", dest="LEFT"
            )

    async def acknowledge(self, event_id: str) -> None:
        """Drop a popped id from the processing list once its disposition is written"""
        async with self._guard():
            await self._redis.lrem(self.processing_key, 1, event_id)

    async def get(self, event_id: str) -> str | None:
        async with self._guard():
            return await self._redis.get(event_id)

    async def delete(self, event_id: str) -> None:
        async with self._guard():
            await self._redis.delete(event_id)

    async def record_in(
        self, side_table: SideTableEnum, event_id: str, payload: str
    ) -> None:
        async with self._guard():
            await self._redis.hset(self.side_table_key(side_table), event_id, payload)

    async def enqueue(self, event_id: str, payload: str) -> None:
        """Store the payload and push its id onto the work queue"""
        async with self._guard():
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(event_id, payload, ex=self._payload_ttl)
                pipe.lpush(self._queue_key, event_id)
                await pipe.execute()
        logger.info(f"Webhook queued: {event_id}")

    async def requeue(self, event_id: str) -> None:
        """Put a popped event back at the consuming end of the queue"""
        async with self._guard():
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.lrem(self.processing_key, 1, event_id)
                pipe.rpush(self._queue_key, event_id)
                await pipe.execute()

    async def recover_in_flight(self) -> int:
        """Move ids left in the processing list back onto the queue, oldest first"""
        recovered = 0
        async with self._guard():
            while await self._redis.lmove(
                self.processing_key, self._queue_key, src="LEFT", dest="RIGHT"
            ):
                recovered += 1
        if recovered:
            logger.warning(f"Recovered {recovered} in-flight webhook(s)")
        return recovered

    async def list_side_table(self, side_table: SideTableEnum) -> dict[str, str]:
        async with self._guard():
            return await self._redis.hgetall(self.side_table_key(side_table))

    async def get_from_side_table(
        self, side_table: SideTableEnum, event_id: str
    ) -> str | None:
        async with self._guard():
            return await self._redis.hget(self.side_table_key(side_table), event_id)

    async def remove_from_side_table(
        self, side_table: SideTableEnum, event_id: str
    ) -> None:
        async with self._guard():
            await self._redis.hdel(self.side_table_key(side_table), event_id)

    async def ping(self) -> bool:
        async with self._guard():
            return await self._redis.ping()

    async def close(self) -> None:
        await self._redis.aclose()
