"""Transport contracts and the in-memory provider."""

from .base import (
    BroadcastChannel,
    Channel,
    InboundChannel,
    RequestChannel,
    TransportClosed,
    TransportError,
    TransportProvider,
)
from .memory import LocalTransport

__all__ = [
    "BroadcastChannel",
    "Channel",
    "InboundChannel",
    "LocalTransport",
    "RequestChannel",
    "TransportClosed",
    "TransportError",
    "TransportProvider",
]
