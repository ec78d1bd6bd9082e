"""Redis Pub/Sub transport for the support channel."""
from __future__ import annotations

import logging

import redis.asyncio as aioredis

from support_session.application.ports.bus import Frame

logger = logging.getLogger(__name__)

READ_POLL_SECONDS = 1.0


class RedisPubSubTransport:
    """Implements application.ports.bus.PubSubTransport."""

    def __init__(self, url: str) -> None:
        self._url = url
        self._redis: aioredis.Redis | None = None
        self._pubsub: aioredis.client.PubSub | None = None

    async def open(self) -> None:
        self._redis = aioredis.from_url(self._url, decode_responses=True)
        await self._redis.ping()
        self._pubsub = self._redis.pubsub()
        logger.debug("Redis transport opened: %s", self._url)

    async def subscribe(self, address: str) -> None:
        await self._require_pubsub().subscribe(address)

    async def unsubscribe(self, address: str) -> None:
        await self._require_pubsub().unsubscribe(address)

    async def publish(self, address: str, body: str) -> None:
        if self._redis is None:
            raise ConnectionError("transport is not open")
        await self._redis.publish(address, body)

    async def read(self) -> Frame | None:
        pubsub = self._require_pubsub()
        while True:
            message = await pubsub.get_message(timeout=READ_POLL_SECONDS)
            if message is None:
                continue
            if message["type"] in ("message", "pmessage"):
                return Frame(address=message["channel"], body=message["data"])
            # subscribe acks and heartbeat pongs
            return None

    async def ping(self) -> None:
        await self._require_pubsub().ping()

    async def close(self) -> None:
        pubsub, redis = self._pubsub, self._redis
        self._pubsub = None
        self._redis = None
        if pubsub is not None:
            await pubsub.aclose()
        if redis is not None:
            await redis.aclose()
        logger.debug("Redis transport closed")

    def _require_pubsub(self) -> aioredis.client.PubSub:
        if self._pubsub is None:
            raise ConnectionError("transport is not open")
        return self._pubsub
