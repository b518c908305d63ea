"""
Runtime component objects.

A Component wraps a parsed declaration with everything its hooks need: the
local EventBus, a logger, cross-component lookups and, on Services, the bound
broadcast and inbound channels. Hooks are free to hang their own state off
the object.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .declaration import CapabilityKind, ComponentDeclaration, Role
from .errors import UnknownSignal, WrongSide
from .events import Callback, EventBus, Subscription

if TYPE_CHECKING:
    from ..transport.base import Channel
    from .bridge import Bridge
    from .coordinator import Coordinator
    from .registry import RemoteDescriptor


class Component:
    """A registered Service or Controller, as seen by its own hooks."""

    def __init__(
        self,
        declaration: ComponentDeclaration,
        coordinator: Coordinator,
        descriptor: RemoteDescriptor | None = None,
    ) -> None:
        self.declaration = declaration
        self._coordinator = coordinator
        self._descriptor = descriptor
        self.bus = EventBus(declaration.name, declaration.events, declaration.functions)
        self.log = logging.getLogger(f"tandem.components.{declaration.name}")

    @property
    def name(self) -> str:
        return self.declaration.name

    @property
    def role(self) -> Role:
        return self.declaration.role

    def __repr__(self) -> str:
        return f"<{self.role.value.title()} {self.name}>"

    # ==========================================================================
    # Local events and functions
    # ==========================================================================

    def fire(self, event: str, *args: Any) -> None:
        self.bus.fire(event, *args)

    def on(self, event: str, callback: Callback) -> Subscription:
        return self.bus.on(event, callback)

    def once(self, event: str, callback: Callback) -> Subscription:
        return self.bus.once(event, callback)

    def invoke(self, function: str, *args: Any) -> Any:
        return self.bus.invoke(function, *args)

    # ==========================================================================
    # Cross-component lookups
    # ==========================================================================

    async def get_service(self, name: str) -> Component | Bridge:
        return await self._coordinator.get_service(name)

    def get_controller(self, name: str) -> Component:
        return self._coordinator.get_controller(name)

    # ==========================================================================
    # Remote signals (Services only)
    # ==========================================================================

    def _channel(self, kind: CapabilityKind, signal: str) -> Channel:
        if self._descriptor is None:
            raise WrongSide(f"{self.name} has no bound channels")
        try:
            return self._descriptor.channels(kind)[signal]
        except KeyError:
            raise UnknownSignal(self.name, signal) from None

    def broadcast(self, signal: str, *args: Any, target: str | None = None) -> None:
        """Fire a reliable signal to every client, or only ``target``."""
        self._channel(CapabilityKind.SIGNAL, signal).send(*args, target=target)

    def broadcast_unreliable(self, signal: str, *args: Any, target: str | None = None) -> None:
        """Like broadcast, but delivery may be dropped by the transport."""
        self._channel(CapabilityKind.UNRELIABLE_SIGNAL, signal).send(*args, target=target)

    def listen_inbound(self, signal: str, callback: Callback) -> Subscription:
        """``callback(caller, *args)`` for every client fire of ``signal``."""
        return self._channel(CapabilityKind.INBOUND_SIGNAL, signal).receive(callback)

    def get_status(self) -> dict[str, Any]:
        return {
            **self.declaration.to_dict(),
            "bus": self.bus.get_stats(),
        }
