"""
In-memory transport provider.

Both sides of the pair share one LocalTransport on one event loop. Every
delivery is scheduled with ``loop.call_soon``, so sending never runs the
receiver inline and each channel stays FIFO, which is what a real network
transport gives per sender and per channel.

Usage:
    transport = LocalTransport()
    server = Coordinator(transport)
    client = Coordinator(transport, client_id="player-1")
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..core.events import Signal, Subscription
from .base import (
    BroadcastChannel,
    InboundCallback,
    InboundChannel,
    RequestCallback,
    RequestChannel,
    TransportClosed,
    TransportError,
    TransportProvider,
)

if TYPE_CHECKING:
    from ..config import TransportConfig
    from ..core.registry import RemoteDescriptor

logger = logging.getLogger(__name__)


class LocalRequestChannel(RequestChannel):

    def __init__(self, transport: LocalTransport, component: str, name: str) -> None:
        super().__init__(component, name)
        self._transport = transport
        self._receiver: RequestCallback | None = None
        self._pending: dict[int, asyncio.Future[tuple]] = {}
        self._ids = itertools.count(1)

    def receive(self, callback: RequestCallback) -> Subscription:
        if self._receiver is not None:
            raise TransportError(f"{self!r} already has a receiver")
        self._receiver = callback
        return Subscription(self._detach)

    def _detach(self) -> None:
        self._receiver = None

    def respond(self, caller: str, request_id: int, values: tuple) -> None:
        future = self._pending.pop(request_id, None)
        if future is None:
            logger.debug("Dropping response to %s for %r, nobody waiting", caller, self)
            return
        self._transport.deliver(_resolve, future, tuple(values))

    async def request(self, caller: str, *args: Any) -> tuple:
        self._transport.check_open()
        loop = asyncio.get_running_loop()
        request_id = next(self._ids)
        future: asyncio.Future[tuple] = loop.create_future()
        self._pending[request_id] = future
        self._transport.deliver(self._arrive, caller, request_id, args)
        try:
            return await future
        finally:
            self._pending.pop(request_id, None)

    def _arrive(self, caller: str, request_id: int, args: tuple) -> None:
        if self._receiver is None:
            future = self._pending.pop(request_id, None)
            if future is not None and not future.done():
                future.set_exception(TransportError(f"no receiver bound to {self!r}"))
            return
        self._receiver(caller, request_id, args)

    def fail_pending(self, exc: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(exc)
        self._pending.clear()


def _resolve(future: asyncio.Future[tuple], values: tuple) -> None:
    if not future.done():
        future.set_result(values)


class LocalBroadcastChannel(BroadcastChannel):

    def __init__(
        self,
        transport: LocalTransport,
        component: str,
        name: str,
        reliable: bool,
    ) -> None:
        super().__init__(component, name)
        self.reliable = reliable
        self._transport = transport
        self._listeners: dict[str, Signal] = {}

    def send(self, *args: Any, target: str | None = None) -> None:
        self._transport.check_open()
        if target is None:
            signals = list(self._listeners.values())
        else:
            signals = [self._listeners[target]] if target in self._listeners else []

        for signal in signals:
            if not self.reliable and self._transport.should_drop():
                logger.debug("Dropped unreliable %r to %s", self, signal.name)
                continue
            self._transport.deliver(signal.fire, *args)

    def receive(self, listener: str, callback: Callable[..., Any]) -> Subscription:
        signal = self._listeners.get(listener)
        if signal is None:
            signal = self._listeners[listener] = Signal(listener, owner=f"{self.component}.{self.name}")
        return signal.connect(callback)


class LocalInboundChannel(InboundChannel):

    def __init__(self, transport: LocalTransport, component: str, name: str) -> None:
        super().__init__(component, name)
        self._transport = transport
        self._signal = Signal(name, owner=component)

    def send(self, caller: str, *args: Any) -> None:
        self._transport.check_open()
        self._transport.deliver(self._signal.fire, caller, *args)

    def receive(self, callback: InboundCallback) -> Subscription:
        return self._signal.connect(callback)


class LocalTransport(TransportProvider):
    """
    Transport provider for a server and its clients sharing one process.

    Args:
        drop_rate: probability (0..1) that an unreliable broadcast is lost
            on its way to a listener
    """

    def __init__(self, drop_rate: float = 0.0, seed: int | None = None) -> None:
        if not 0.0 <= drop_rate <= 1.0:
            raise ValueError("drop_rate must be between 0 and 1")
        self.drop_rate = drop_rate
        self._random = random.Random(seed)
        self._published: dict[str, RemoteDescriptor] = {}
        self._request_channels: list[LocalRequestChannel] = []
        self._closed = False

    @classmethod
    def from_config(cls, cfg: TransportConfig, seed: int | None = None) -> LocalTransport:
        return cls(drop_rate=cfg.unreliable_drop_rate, seed=seed)

    @property
    def closed(self) -> bool:
        return self._closed

    def check_open(self) -> None:
        if self._closed:
            raise TransportClosed("transport is closed")

    def should_drop(self) -> bool:
        return self.drop_rate > 0 and self._random.random() < self.drop_rate

    def deliver(self, callback: Callable[..., Any], *args: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise TransportError("no running event loop to deliver on") from None
        loop.call_soon(callback, *args)

    # ==========================================================================
    # Channel creation
    # ==========================================================================

    def create_request_channel(self, component: str, method: str) -> LocalRequestChannel:
        self.check_open()
        channel = LocalRequestChannel(self, component, method)
        self._request_channels.append(channel)
        return channel

    def create_broadcast_channel(self, component: str, signal: str, reliable: bool) -> LocalBroadcastChannel:
        self.check_open()
        return LocalBroadcastChannel(self, component, signal, reliable)

    def create_inbound_channel(self, component: str, signal: str) -> LocalInboundChannel:
        self.check_open()
        return LocalInboundChannel(self, component, signal)

    # ==========================================================================
    # Descriptor table
    # ==========================================================================

    def publish(self, descriptor: RemoteDescriptor) -> None:
        self.check_open()
        if descriptor.component in self._published:
            raise TransportError(f"descriptor already published: {descriptor.component}")
        self._published[descriptor.component] = descriptor
        logger.debug("Published descriptor for %s", descriptor.component)

    def discover(self, component: str) -> RemoteDescriptor | None:
        return self._published.get(component)

    def published(self) -> list[str]:
        return list(self._published)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for channel in self._request_channels:
            channel.fail_pending(TransportClosed("transport closed"))
        logger.info("Local transport closed")
