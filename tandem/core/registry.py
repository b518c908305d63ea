"""
Capability registry.

Parses raw declarations, enforces unique names per role and, for Services
on the server, binds one transport channel per remote capability. The
channels of a Service are gathered into a RemoteDescriptor that is published
in a single step, so a client either sees all of them or none.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from ..transport.base import (
    BroadcastChannel,
    Channel,
    InboundChannel,
    RequestChannel,
    TransportProvider,
)
from .declaration import CapabilityKind, ComponentDeclaration, Role, parse_declaration
from .errors import DuplicateComponent, RegistrationClosed, UnknownComponent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteDescriptor:
    """Published, read-only map from capability name to bound channel."""
    component: str
    methods: Mapping[str, RequestChannel]
    signals: Mapping[str, BroadcastChannel]
    unreliable_signals: Mapping[str, BroadcastChannel]
    inbound_signals: Mapping[str, InboundChannel]

    def channels(self, kind: CapabilityKind) -> Mapping[str, Channel]:
        if not kind.remote:
            raise ValueError(f"{kind.value} is not a remote capability")
        return getattr(self, kind.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            **{
                kind.value: sorted(getattr(self, kind.value))
                for kind in CapabilityKind
                if kind.remote
            },
        }


ChannelFactory = Callable[[TransportProvider, str, str], Channel]

_CHANNEL_FACTORIES: dict[CapabilityKind, ChannelFactory] = {
    CapabilityKind.METHOD: lambda t, c, n: t.create_request_channel(c, n),
    CapabilityKind.SIGNAL: lambda t, c, n: t.create_broadcast_channel(c, n, True),
    CapabilityKind.UNRELIABLE_SIGNAL: lambda t, c, n: t.create_broadcast_channel(c, n, False),
    CapabilityKind.INBOUND_SIGNAL: lambda t, c, n: t.create_inbound_channel(c, n),
}


class CapabilityRegistry:
    """
    Per-process component table.

    Written while the process is initializing, read-only afterwards.

    Args:
        transport: provider used to bind Service channels; ``None`` on the
            client, where nothing is bound
    """

    def __init__(self, transport: TransportProvider | None = None) -> None:
        self._transport = transport
        self._components: dict[Role, dict[str, ComponentDeclaration]] = {
            role: {} for role in Role
        }
        self._descriptors: dict[str, RemoteDescriptor] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Refuse any further registration."""
        self._closed = True

    def register(self, raw: Mapping[str, Any], role: Role) -> ComponentDeclaration:
        """
        Parse and store a declaration.

        Raises:
            RegistrationClosed: the registry has been closed
            MissingName / InvalidCapabilityType: see parse_declaration
            DuplicateComponent: the name is already taken in ``role``
        """
        if self._closed:
            raise RegistrationClosed("component registration is closed")

        declaration = parse_declaration(raw, role)
        table = self._components[role]
        if declaration.name in table:
            raise DuplicateComponent(declaration.name, role.value)

        if role is Role.SERVICE and self._transport is not None:
            descriptor = self._bind(declaration)
            self._transport.publish(descriptor)
            self._descriptors[declaration.name] = descriptor

        table[declaration.name] = declaration
        logger.debug("Registered %s: %s", role.value, declaration.name)
        return declaration

    def _bind(self, declaration: ComponentDeclaration) -> RemoteDescriptor:
        """Create every channel first; the descriptor only exists once all succeeded."""
        assert self._transport is not None
        channels: dict[str, Mapping[str, Channel]] = {}

        for kind, factory in _CHANNEL_FACTORIES.items():
            bound: dict[str, Channel] = {}
            for name in sorted(declaration.names(kind)):
                bound[name] = factory(self._transport, declaration.name, name)
            channels[kind.value] = MappingProxyType(bound)

        return RemoteDescriptor(component=declaration.name, **channels)

    # ==========================================================================
    # Lookups
    # ==========================================================================

    def get(self, role: Role, name: str) -> ComponentDeclaration:
        try:
            return self._components[role][name]
        except KeyError:
            raise UnknownComponent(f"no {role.value} named {name!r}") from None

    def contains(self, role: Role, name: str) -> bool:
        return name in self._components[role]

    def components(self, role: Role) -> list[ComponentDeclaration]:
        """Declarations in registration order."""
        return list(self._components[role].values())

    def descriptor(self, name: str) -> RemoteDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise UnknownComponent(f"no descriptor bound for {name!r}") from None
