"""Tandem - server/client component framework with auto-wired remotes."""

__version__ = "0.3.0"

from .config import TandemConfig, load_config
from .core import (
    ALLOW,
    Bridge,
    Component,
    Coordinator,
    LifecycleState,
    MiddlewareContext,
    Reject,
    Subscription,
    TandemError,
)
from .transport import LocalTransport, TransportProvider

__all__ = [
    "ALLOW",
    "Bridge",
    "Component",
    "Coordinator",
    "LifecycleState",
    "LocalTransport",
    "MiddlewareContext",
    "Reject",
    "Subscription",
    "TandemConfig",
    "TandemError",
    "TransportProvider",
    "load_config",
    "__version__",
]
