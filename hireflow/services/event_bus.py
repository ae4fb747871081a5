from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from typing import Any, Dict

import redis.asyncio as redis
from redis.exceptions import RedisError

from hireflow.core.config import settings

logger = logging.getLogger("hireflow.events")

ALL_COMPANIES = object()


class EventBus:
    """Fans workflow events out to per-company subscriber queues.

    With a Redis URL every process publishes to one channel and relays what it hears
    to its own subscribers. Without one, events stay in process.
    """

    def __init__(self, redis_url: str | None = None, channel: str = "hireflow:events", queue_size: int = 200) -> None:
        self._redis_url = (settings.redis_url if redis_url is None else redis_url).strip()
        self._channel = channel
        self._queue_size = queue_size
        self._queues: dict[Any, set[asyncio.Queue[str]]] = defaultdict(set)
        self._redis: redis.Redis | None = None
        self._relay_task: asyncio.Task | None = None

    async def subscribe(self, company_id: Any = ALL_COMPANIES) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._queue_size)
        self._queues[company_id].add(queue)
        self._connect()
        return queue

    def unsubscribe(self, queue: asyncio.Queue[str]) -> None:
        for queues in self._queues.values():
            queues.discard(queue)

    async def publish(self, payload: Dict[str, Any]) -> None:
        data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
        if self._connect():
            try:
                await self._redis.publish(self._channel, data)
                return
            except RedisError:
                logger.warning("event_publish_failed channel=%s", self._channel, exc_info=True)
        self._deliver(data)

    def _deliver(self, data: str) -> None:
        try:
            company_id = json.loads(data).get("company_id")
        except (ValueError, AttributeError):
            return
        targets = [*self._queues.get(company_id, ()), *self._queues.get(ALL_COMPANIES, ())]
        for queue in targets:
            # slow readers lose their oldest event
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(data)

    def _connect(self) -> bool:
        if not self._redis_url:
            return False
        if self._redis is None:
            self._redis = redis.from_url(self._redis_url, decode_responses=True)
        if self._relay_task is None or self._relay_task.done():
            self._relay_task = asyncio.create_task(self._relay(self._redis))
        return True

    async def _relay(self, client: redis.Redis) -> None:
        pubsub = client.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") == "message" and isinstance(message.get("data"), str):
                    self._deliver(message["data"])
        finally:
            await pubsub.aclose()

    async def close(self) -> None:
        if self._relay_task and not self._relay_task.done():
            self._relay_task.cancel()
        self._relay_task = None
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


event_bus = EventBus()
