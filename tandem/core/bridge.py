"""
Client-side bridges.

A Bridge is the client's proxy for one remote Service. The factory discovers
the Service's published descriptor (waiting a bounded time for it), builds
one Bridge per name and hands out that same instance from then on.

Usage:
    factory = ClientBridgeFactory(transport, caller="player-1")
    inventory = await factory.get_service("Inventory")

    items, = await inventory.call("GetItems")
    sub = inventory.listen("ItemAdded", on_item_added)
    inventory.fire("Drop", "apple")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from ..transport.base import BroadcastChannel, TransportProvider
from .errors import BridgeDestroyed, ServiceDiscoveryTimeout, UnknownMethod, UnknownSignal
from .events import Subscription
from .registry import RemoteDescriptor

logger = logging.getLogger(__name__)

DEFAULT_DISCOVERY_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.05


class BridgeState(str, Enum):
    LIVE = "live"
    DESTROYED = "destroyed"


class Bridge:
    """Proxy for one remote Service, bound to its published channels."""

    def __init__(
        self,
        descriptor: RemoteDescriptor,
        caller: str,
        on_destroy: Callable[[Bridge], None] | None = None,
    ) -> None:
        self.name = descriptor.component
        self._caller = caller
        self._methods = dict(descriptor.methods)
        self._signals = dict(descriptor.signals)
        self._unreliable_signals = dict(descriptor.unreliable_signals)
        self._inbound_signals = dict(descriptor.inbound_signals)
        self._subscriptions: list[Subscription] = []
        self._state = BridgeState.LIVE
        self._on_destroy = on_destroy

    def __repr__(self) -> str:
        return f"<Bridge {self.name} {self._state.value}>"

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def is_live(self) -> bool:
        return self._state is BridgeState.LIVE

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    @property
    def signals(self) -> list[str]:
        return sorted(self._signals)

    @property
    def unreliable_signals(self) -> list[str]:
        return sorted(self._unreliable_signals)

    @property
    def inbound_signals(self) -> list[str]:
        return sorted(self._inbound_signals)

    @property
    def subscriptions(self) -> list[Subscription]:
        return [s for s in self._subscriptions if s.connected]

    def _check_live(self) -> None:
        if self._state is BridgeState.DESTROYED:
            raise BridgeDestroyed(self.name)

    async def call(self, method: str, *args: Any) -> tuple:
        """
        Call a remote method and wait for its response tuple.

        Rejections and server-side faults come back as ``(None, reason)``.

        Raises:
            UnknownMethod: ``method`` is not declared (no round trip is made)
            BridgeDestroyed: the bridge was destroyed
            TransportError: the transport failed
        """
        self._check_live()
        try:
            channel = self._methods[method]
        except KeyError:
            raise UnknownMethod(self.name, method) from None
        return await channel.request(self._caller, *args)

    def fire(self, signal: str, *args: Any) -> None:
        """Send an inbound signal to the server; returns immediately."""
        self._check_live()
        try:
            channel = self._inbound_signals[signal]
        except KeyError:
            raise UnknownSignal(self.name, signal) from None
        channel.send(self._caller, *args)

    def listen(self, signal: str, callback: Callable[..., Any]) -> Subscription:
        """Receive a reliable broadcast signal."""
        return self._listen(self._signals, signal, callback)

    def listen_unreliable(self, signal: str, callback: Callable[..., Any]) -> Subscription:
        """Receive an unreliable broadcast signal."""
        return self._listen(self._unreliable_signals, signal, callback)

    def _listen(
        self,
        channels: Mapping[str, BroadcastChannel],
        signal: str,
        callback: Callable[..., Any],
    ) -> Subscription:
        self._check_live()
        try:
            channel = channels[signal]
        except KeyError:
            raise UnknownSignal(self.name, signal) from None

        subscription = channel.receive(self._caller, callback)
        self._subscriptions = [s for s in self._subscriptions if s.connected]
        self._subscriptions.append(subscription)
        return subscription

    def destroy(self) -> None:
        """Disconnect everything subscribed through this bridge."""
        if self._state is BridgeState.DESTROYED:
            return
        for subscription in self._subscriptions:
            subscription.disconnect()
        self._subscriptions.clear()
        self._state = BridgeState.DESTROYED
        logger.debug("Destroyed bridge %s", self.name)

        if self._on_destroy is not None:
            self._on_destroy(self)


class ClientBridgeFactory:
    """
    Discovers and caches Bridges for one client process.

    Args:
        transport: provider whose ``discover`` is polled
        caller: identity this client presents on every request and fire
        timeout: bounded discovery wait in seconds
        poll_interval: delay between discovery attempts
    """

    def __init__(
        self,
        transport: TransportProvider,
        caller: str,
        timeout: float = DEFAULT_DISCOVERY_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._transport = transport
        self.caller = caller
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._bridges: dict[str, Bridge] = {}
        self._pending: dict[str, asyncio.Future[Bridge]] = {}

    def cached(self, name: str) -> Bridge | None:
        return self._bridges.get(name)

    @property
    def bridges(self) -> list[Bridge]:
        return list(self._bridges.values())

    async def get_service(self, name: str, timeout: float | None = None) -> Bridge:
        """
        Return the Bridge for ``name``, discovering it if needed.

        Concurrent lookups of the same name share one discovery, so they all
        get the same Bridge (or the same timeout).

        Raises:
            ServiceDiscoveryTimeout: nothing was published within the wait
        """
        bridge = self._bridges.get(name)
        if bridge is not None:
            return bridge

        pending = self._pending.get(name)
        if pending is None:
            wait = self.timeout if timeout is None else timeout
            pending = asyncio.ensure_future(self._discover(name, wait))
            self._pending[name] = pending
            pending.add_done_callback(lambda done: self._forget(name, done))

        return await asyncio.shield(pending)

    def _forget(self, name: str, done: asyncio.Future[Bridge]) -> None:
        if self._pending.get(name) is done:
            del self._pending[name]
        if not done.cancelled() and done.exception() is not None:
            logger.debug("Discovery of %s failed: %s", name, done.exception())

    async def _discover(self, name: str, timeout: float) -> Bridge:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        descriptor = self._transport.discover(name)
        while descriptor is None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning("Service %s not discovered within %.2fs", name, timeout)
                raise ServiceDiscoveryTimeout(name, timeout)
            await asyncio.sleep(min(self.poll_interval, remaining))
            descriptor = self._transport.discover(name)

        bridge = Bridge(descriptor, self.caller, on_destroy=self._evict)
        self._bridges[name] = bridge
        logger.info("Discovered service %s", name)
        return bridge

    def _evict(self, bridge: Bridge) -> None:
        if self._bridges.get(bridge.name) is bridge:
            del self._bridges[bridge.name]

    def destroy_all(self) -> None:
        for bridge in list(self._bridges.values()):
            bridge.destroy()
