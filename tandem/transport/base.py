"""Transport interface.

This is the (small) contract a transport provider has to follow. The core
never creates sockets or looks anything up on the wire itself; it asks a
TransportProvider for channels and for published descriptors.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..core.events import Subscription
    from ..core.registry import RemoteDescriptor


class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportClosed(TransportError):
    """The channel or provider was closed while in use."""


RequestCallback = Callable[[str, int, tuple], None]
InboundCallback = Callable[..., None]


class Channel(ABC):
    """Common attributes of every bound channel."""

    def __init__(self, component: str, name: str) -> None:
        self.component = component
        self.name = name

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.component}.{self.name}>"


class RequestChannel(Channel):
    """Request/response channel for one method."""

    @abstractmethod
    def receive(self, callback: RequestCallback) -> Subscription:
        """Server side: ``callback(caller, request_id, args)`` per request."""

    @abstractmethod
    def respond(self, caller: str, request_id: int, values: tuple) -> None:
        """Server side: answer request ``request_id`` from ``caller``."""

    @abstractmethod
    async def request(self, caller: str, *args: Any) -> tuple:
        """Client side: send a request and wait for its response tuple."""


class BroadcastChannel(Channel):
    """Server to client, one to many."""

    reliable: bool = True

    @abstractmethod
    def send(self, *args: Any, target: str | None = None) -> None:
        """Server side: deliver to every listener, or only ``target``."""

    @abstractmethod
    def receive(self, listener: str, callback: Callable[..., Any]) -> Subscription:
        """Client side: deliver broadcasts to ``callback`` as ``listener``."""


class InboundChannel(Channel):
    """Client to server, one way."""

    @abstractmethod
    def send(self, caller: str, *args: Any) -> None:
        """Client side: fire and forget."""

    @abstractmethod
    def receive(self, callback: InboundCallback) -> Subscription:
        """Server side: ``callback(caller, *args)`` per message."""


class TransportProvider(ABC):
    """Creates channels and carries the published descriptor table."""

    @abstractmethod
    def create_request_channel(self, component: str, method: str) -> RequestChannel:
        ...

    @abstractmethod
    def create_broadcast_channel(self, component: str, signal: str, reliable: bool) -> BroadcastChannel:
        ...

    @abstractmethod
    def create_inbound_channel(self, component: str, signal: str) -> InboundChannel:
        ...

    @abstractmethod
    def publish(self, descriptor: RemoteDescriptor) -> None:
        """Make ``descriptor`` visible to ``discover`` in one step."""

    @abstractmethod
    def discover(self, component: str) -> RemoteDescriptor | None:
        """The published descriptor for ``component``, or None if not found."""

    def close(self) -> None:
        """Release any resources held by the provider."""
