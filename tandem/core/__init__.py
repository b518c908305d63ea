"""Tandem Core - registry, middleware, dispatcher, event bus, lifecycle and bridges."""

from .bridge import Bridge, BridgeState, ClientBridgeFactory
from .component import Component
from .coordinator import Coordinator, Side
from .declaration import CapabilityKind, ComponentDeclaration, Role, parse_declaration
from .dispatcher import RequestDispatcher
from .errors import (
    AlreadyInitialized,
    BridgeDestroyed,
    ComponentInitError,
    DuplicateComponent,
    InvalidCapabilityType,
    InvalidTransition,
    MissingName,
    NotReady,
    RegistrationClosed,
    ServiceDiscoveryTimeout,
    TandemError,
    UnknownComponent,
    UnknownEvent,
    UnknownFunction,
    UnknownMethod,
    UnknownSignal,
    WrongSide,
)
from .events import EventBus, Signal, Subscription
from .lifecycle import LifecycleCoordinator, LifecycleState
from .middleware import ALLOW, Allow, MiddlewareContext, MiddlewarePipeline, Reject
from .registry import CapabilityRegistry, RemoteDescriptor

__all__ = [
    "ALLOW",
    "AlreadyInitialized",
    "Allow",
    "Bridge",
    "BridgeDestroyed",
    "BridgeState",
    "CapabilityKind",
    "CapabilityRegistry",
    "ClientBridgeFactory",
    "Component",
    "ComponentDeclaration",
    "ComponentInitError",
    "Coordinator",
    "DuplicateComponent",
    "EventBus",
    "InvalidCapabilityType",
    "InvalidTransition",
    "LifecycleCoordinator",
    "LifecycleState",
    "MiddlewareContext",
    "MiddlewarePipeline",
    "MissingName",
    "NotReady",
    "RegistrationClosed",
    "Reject",
    "RemoteDescriptor",
    "RequestDispatcher",
    "Role",
    "ServiceDiscoveryTimeout",
    "Side",
    "Signal",
    "Subscription",
    "TandemError",
    "UnknownComponent",
    "UnknownEvent",
    "UnknownFunction",
    "UnknownMethod",
    "UnknownSignal",
    "WrongSide",
    "parse_declaration",
]
