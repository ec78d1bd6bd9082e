"""Broker connection lifecycle: reconnect loop, subscription replay, heartbeat."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine

from support_session.application.exceptions import PublishFailed, TransportDisconnected
from support_session.application.ports.bus import PubSubTransport
from support_session.config import settings
from support_session.domain.value_objects.enums import ConnectionStatus
from support_session.infrastructure.bus.redis_pubsub import RedisPubSubTransport
from support_session.infrastructure.bus.serializer import encode_payload

logger = logging.getLogger(__name__)

FrameHandler = Callable[[str], Coroutine[Any, Any, None]]
OnConnectCallback = Callable[[], Coroutine[Any, Any, None]]
OnStatusCallback = Callable[[ConnectionStatus], None]
TransportFactory = Callable[[], PubSubTransport]


class ChannelConnection:
    """Keeps one live transport to the broker until disconnected.

    A supervisor task opens the transport, replays every registered
    subscription, then pumps inbound frames and heartbeats. Any failure sends
    it back to a fixed-delay retry; the status only turns to ERROR when the
    owner gives up or ``max_attempts`` is exhausted.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        *,
        reconnect_delay: float = 5.0,
        heartbeat_interval: float = 4.0,
        heartbeat_timeout: float = 12.0,
        max_attempts: int | None = None,
        on_connect: OnConnectCallback | None = None,
        on_status: OnStatusCallback | None = None,
    ) -> None:
        self._transport_factory = transport_factory
        self._reconnect_delay = reconnect_delay
        self._heartbeat_interval = heartbeat_interval
        self._heartbeat_timeout = heartbeat_timeout
        self._max_attempts = max_attempts
        self._on_connect = on_connect
        self._on_status = on_status

        self._handlers: dict[str, FrameHandler] = {}
        self._transport: PubSubTransport | None = None
        self._status = ConnectionStatus.DISCONNECTED
        self._generation = 0
        self._supervisor: asyncio.Task[None] | None = None
        self._connected = asyncio.Event()
        self._lost = asyncio.Event()
        self._last_activity = 0.0

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED and self._transport is not None

    @property
    def subscriptions(self) -> list[str]:
        return list(self._handlers)

    async def connect(self) -> None:
        """Start the supervisor; returns without waiting for the handshake."""
        if self._supervisor is not None and not self._supervisor.done():
            return
        self._generation += 1
        self._set_status(ConnectionStatus.CONNECTING)
        self._supervisor = asyncio.create_task(
            self._run(self._generation), name="support-channel-supervisor",
        )

    async def wait_connected(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._connected.wait(), timeout)

    async def subscribe(self, address: str, handler: FrameHandler) -> None:
        self._handlers[address] = handler
        transport = self._transport
        if transport is None:
            return
        try:
            await transport.subscribe(address)
        except Exception as exc:
            # the registry is replayed on the next connect
            logger.warning("Subscribe to %s failed: %s", address, exc)
            self._mark_lost()

    async def unsubscribe(self, address: str) -> None:
        if self._handlers.pop(address, None) is None:
            return
        transport = self._transport
        if transport is None:
            return
        try:
            await transport.unsubscribe(address)
        except Exception as exc:
            logger.debug("Unsubscribe from %s failed: %s", address, exc)

    async def publish(self, address: str, payload: dict[str, Any]) -> None:
        transport = self._transport
        if transport is None or self._status != ConnectionStatus.CONNECTED:
            raise PublishFailed("support channel is not connected")
        body = encode_payload(payload)
        try:
            await transport.publish(address, body)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Publish to %s failed: %s", address, exc)
            self._mark_lost()
            raise PublishFailed(f"publish failed: {exc}") from exc

    async def disconnect(self) -> None:
        """Idempotent; no handler or callback runs once this returns."""
        for address in list(self._handlers):
            await self.unsubscribe(address)
        await self._stop(ConnectionStatus.DISCONNECTED)

    async def give_up(self) -> None:
        """Stop retrying and report the connection as failed."""
        await self._stop(ConnectionStatus.ERROR)

    async def _stop(self, final_status: ConnectionStatus) -> None:
        self._generation += 1
        task, self._supervisor = self._supervisor, None
        if task is not None and not task.done():
            task.cancel()
            if task is not asyncio.current_task():
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        transport, self._transport = self._transport, None
        if transport is not None:
            await self._close_quietly(transport)
        self._connected.clear()
        self._set_status(final_status)

    async def _run(self, generation: int) -> None:
        attempts = 0
        while generation == self._generation:
            transport = self._transport_factory()
            self._lost = asyncio.Event()
            try:
                await transport.open()
                for address in list(self._handlers):
                    await transport.subscribe(address)
                if generation != self._generation:
                    return
                self._transport = transport
                self._last_activity = asyncio.get_running_loop().time()
                attempts = 0
                self._set_status(ConnectionStatus.CONNECTED)
                self._connected.set()
                logger.info(
                    "Support channel connected (subscriptions=%d)", len(self._handlers),
                )
                if self._on_connect is not None:
                    try:
                        await self._on_connect()
                    except Exception:
                        logger.exception("on_connect callback failed")
                await self._pump(transport, generation)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Support channel lost: %s", exc)
            finally:
                self._connected.clear()
                if self._transport is transport:
                    self._transport = None
                await self._close_quietly(transport)

            if generation != self._generation:
                return
            attempts += 1
            if self._max_attempts is not None and attempts >= self._max_attempts:
                logger.error("Support channel gave up after %d attempts", attempts)
                self._set_status(ConnectionStatus.ERROR)
                return
            self._set_status(ConnectionStatus.CONNECTING)
            await asyncio.sleep(self._reconnect_delay)

    async def _pump(self, transport: PubSubTransport, generation: int) -> None:
        tasks = {
            asyncio.create_task(self._read_loop(transport, generation), name="support-channel-reader"),
            asyncio.create_task(self._heartbeat(transport), name="support-channel-heartbeat"),
            asyncio.create_task(self._lost.wait(), name="support-channel-lost"),
        }
        try:
            done, _pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is not None:
                    raise exc
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        raise TransportDisconnected("connection marked as lost")

    async def _read_loop(self, transport: PubSubTransport, generation: int) -> None:
        loop = asyncio.get_running_loop()
        while True:
            frame = await transport.read()
            self._last_activity = loop.time()
            if frame is None:
                continue
            if generation != self._generation:
                logger.debug("Dropping late frame on %s", frame.address)
                return
            handler = self._handlers.get(frame.address)
            if handler is None:
                logger.debug("No handler for %s", frame.address)
                continue
            try:
                await handler(frame.body)
            except Exception:
                logger.exception("Error handling frame on %s", frame.address)

    async def _heartbeat(self, transport: PubSubTransport) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            idle = loop.time() - self._last_activity
            if idle > self._heartbeat_timeout:
                raise TransportDisconnected(f"no heartbeat for {idle:.1f}s")
            await transport.ping()

    def _mark_lost(self) -> None:
        if self._status == ConnectionStatus.CONNECTED:
            self._set_status(ConnectionStatus.CONNECTING)
        self._lost.set()

    def _set_status(self, status: ConnectionStatus) -> None:
        if status == self._status:
            return
        self._status = status
        if self._on_status is not None:
            try:
                self._on_status(status)
            except Exception:
                logger.exception("on_status callback failed")

    @staticmethod
    async def _close_quietly(transport: PubSubTransport) -> None:
        try:
            await transport.close()
        except Exception as exc:
            logger.debug("Transport close failed: %s", exc)


def redis_channel(
    *,
    on_connect: OnConnectCallback | None = None,
    on_status: OnStatusCallback | None = None,
) -> ChannelConnection:
    """ChannelConnection over Redis Pub/Sub, tuned from settings."""
    return ChannelConnection(
        lambda: RedisPubSubTransport(settings.REDIS_URL),
        reconnect_delay=settings.RECONNECT_DELAY_SECONDS,
        heartbeat_interval=settings.HEARTBEAT_SECONDS,
        heartbeat_timeout=settings.HEARTBEAT_TIMEOUT_SECONDS,
        max_attempts=settings.RECONNECT_MAX_ATTEMPTS,
        on_connect=on_connect,
        on_status=on_status,
    )
