"""Unit tests for client bridges and discovery."""

from __future__ import annotations

import asyncio

import pytest

from tandem.core.bridge import Bridge, BridgeState, ClientBridgeFactory
from tandem.core.declaration import Role
from tandem.core.dispatcher import RequestDispatcher
from tandem.core.errors import (
    BridgeDestroyed,
    ServiceDiscoveryTimeout,
    UnknownMethod,
    UnknownSignal,
)
from tandem.core.middleware import MiddlewarePipeline
from tandem.core.registry import CapabilityRegistry
from tandem.transport.memory import LocalTransport

SERVICE = {
    "name": "S",
    "methods": {"Get": lambda caller: 42},
    "signals": ["Ping"],
    "unreliable_signals": ["Move"],
    "inbound_signals": ["Poke"],
}


def _serve(transport, raw=SERVICE):
    registry = CapabilityRegistry(transport)
    dispatcher = RequestDispatcher(MiddlewarePipeline())
    decl = registry.register(raw, Role.SERVICE)
    dispatcher.bind(decl, registry.descriptor(decl.name))
    return registry.descriptor(decl.name)


@pytest.mark.asyncio
class TestClientBridgeFactory:
    """Test discovery and caching."""

    async def test_same_bridge_every_time(self):
        transport = LocalTransport()
        _serve(transport)
        factory = ClientBridgeFactory(transport, caller="p1")

        first = await factory.get_service("S")
        second = await factory.get_service("S")

        assert first is second
        assert factory.cached("S") is first

    async def test_timeout_when_never_published(self):
        transport = LocalTransport()
        factory = ClientBridgeFactory(transport, caller="p1", timeout=0.05, poll_interval=0.01)

        with pytest.raises(ServiceDiscoveryTimeout) as info:
            await factory.get_service("Missing")

        assert info.value.name == "Missing"
        assert factory.cached("Missing") is None

    async def test_publication_during_pending_wait(self):
        """A lookup waiting for the descriptor resolves once it is published."""
        transport = LocalTransport()
        factory = ClientBridgeFactory(transport, caller="p1", timeout=1.0, poll_interval=0.01)

        lookup = asyncio.create_task(factory.get_service("S"))
        await asyncio.sleep(0.03)
        assert not lookup.done()

        _serve(transport)
        bridge = await asyncio.wait_for(lookup, timeout=1.0)

        assert bridge.name == "S"
        assert bridge is await factory.get_service("S")

    async def test_concurrent_lookups_share_one_bridge(self):
        transport = LocalTransport()
        factory = ClientBridgeFactory(transport, caller="p1", timeout=1.0, poll_interval=0.01)

        lookups = [asyncio.create_task(factory.get_service("S")) for _ in range(3)]
        await asyncio.sleep(0.02)
        _serve(transport)
        bridges = await asyncio.gather(*lookups)

        assert bridges[0] is bridges[1] is bridges[2]

    async def test_already_published_is_immediate(self):
        transport = LocalTransport()
        _serve(transport)
        factory = ClientBridgeFactory(transport, caller="p1", timeout=0.001, poll_interval=1.0)

        bridge = await factory.get_service("S")

        assert bridge.is_live

    async def test_per_call_timeout(self):
        transport = LocalTransport()
        factory = ClientBridgeFactory(transport, caller="p1", timeout=60.0, poll_interval=0.01)

        with pytest.raises(ServiceDiscoveryTimeout):
            await factory.get_service("Missing", timeout=0.02)

    async def test_destroyed_bridge_is_evicted(self):
        transport = LocalTransport()
        _serve(transport)
        factory = ClientBridgeFactory(transport, caller="p1")

        first = await factory.get_service("S")
        first.destroy()
        second = await factory.get_service("S")

        assert second is not first
        assert second.is_live


@pytest.mark.asyncio
class TestBridge:
    """Test Bridge operations."""

    async def test_call(self):
        transport = LocalTransport()
        bridge = Bridge(_serve(transport), caller="p1")

        assert await bridge.call("Get") == (42,)

    async def test_call_unknown_method_is_local(self):
        transport = LocalTransport()
        descriptor = _serve(transport)
        bridge = Bridge(descriptor, caller="p1")

        with pytest.raises(UnknownMethod):
            await bridge.call("Set")

    async def test_listen_and_broadcast(self):
        transport = LocalTransport()
        descriptor = _serve(transport)
        bridge = Bridge(descriptor, caller="p1")
        received = []

        bridge.listen("Ping", received.append)
        descriptor.signals["Ping"].send("hi")
        await asyncio.sleep(0)

        assert received == ["hi"]

    async def test_listen_unreliable(self):
        transport = LocalTransport()
        descriptor = _serve(transport)
        bridge = Bridge(descriptor, caller="p1")
        received = []

        bridge.listen_unreliable("Move", lambda x, y: received.append((x, y)))
        descriptor.unreliable_signals["Move"].send(1, 2)
        await asyncio.sleep(0)

        assert received == [(1, 2)]

    async def test_listen_wrong_reliability(self):
        transport = LocalTransport()
        bridge = Bridge(_serve(transport), caller="p1")

        with pytest.raises(UnknownSignal):
            bridge.listen("Move", print)
        with pytest.raises(UnknownSignal):
            bridge.listen_unreliable("Ping", print)

    async def test_fire_inbound(self):
        transport = LocalTransport()
        descriptor = _serve(transport)
        bridge = Bridge(descriptor, caller="p1")
        received = []
        descriptor.inbound_signals["Poke"].receive(lambda caller, *args: received.append((caller, args)))

        bridge.fire("Poke", "hard")
        assert received == []
        await asyncio.sleep(0)

        assert received == [("p1", ("hard",))]

    async def test_fire_unknown_signal(self):
        transport = LocalTransport()
        bridge = Bridge(_serve(transport), caller="p1")

        with pytest.raises(UnknownSignal):
            bridge.fire("Shove")

    async def test_destroy_disconnects_everything(self):
        transport = LocalTransport()
        descriptor = _serve(transport)
        bridge = Bridge(descriptor, caller="p1")
        received = []
        subs = [bridge.listen("Ping", received.append), bridge.listen_unreliable("Move", received.append)]

        bridge.destroy()
        descriptor.signals["Ping"].send("late")
        await asyncio.sleep(0)

        assert received == []
        assert all(not s.connected for s in subs)
        assert bridge.state is BridgeState.DESTROYED

    async def test_use_after_destroy(self):
        transport = LocalTransport()
        bridge = Bridge(_serve(transport), caller="p1")
        bridge.destroy()
        bridge.destroy()

        with pytest.raises(BridgeDestroyed):
            await bridge.call("Get")
        with pytest.raises(BridgeDestroyed):
            bridge.fire("Poke")
        with pytest.raises(BridgeDestroyed):
            bridge.listen("Ping", print)

    async def test_destroy_does_not_abort_in_flight_call(self):
        gate = asyncio.Event()

        async def slow(caller):
            await gate.wait()
            return "late"

        transport = LocalTransport()
        raw = {"name": "Slow", "methods": {"Wait": slow}}
        bridge = Bridge(_serve(transport, raw), caller="p1")

        call = asyncio.create_task(bridge.call("Wait"))
        await asyncio.sleep(0.01)
        bridge.destroy()
        gate.set()

        assert await asyncio.wait_for(call, timeout=1) == ("late",)

    async def test_introspection(self):
        transport = LocalTransport()
        bridge = Bridge(_serve(transport), caller="p1")

        assert bridge.methods == ["Get"]
        assert bridge.signals == ["Ping"]
        assert bridge.unreliable_signals == ["Move"]
        assert bridge.inbound_signals == ["Poke"]
