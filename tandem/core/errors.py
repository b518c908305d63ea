"""
Tandem error taxonomy.

Everything here is a setup or programmer error raised at the call site.
Business failures during a remote call (middleware rejection, handler
faults) never show up as exceptions; the dispatcher turns them into an
ordinary ``(None, reason)`` response.
"""

from __future__ import annotations


class TandemError(Exception):
    """Base class for all framework errors."""


# =============================================================================
# Registration
# =============================================================================

class MissingName(TandemError):
    """A declaration did not provide a component name."""

    def __init__(self) -> None:
        super().__init__("component declaration is missing a name")


class DuplicateComponent(TandemError):
    """A component with the same name is already registered in that role."""

    def __init__(self, name: str, role: str) -> None:
        super().__init__(f"{role} already registered: {name}")
        self.name = name
        self.role = role


class InvalidCapabilityType(TandemError):
    """A declared field does not have the expected shape."""

    def __init__(self, component: str, field: str, detail: str) -> None:
        super().__init__(f"{component}.{field}: {detail}")
        self.component = component
        self.field = field


class RegistrationClosed(TandemError):
    """Registration was attempted after the process started initializing."""


# =============================================================================
# Lifecycle
# =============================================================================

class InvalidTransition(TandemError):
    """The lifecycle was asked to move somewhere other than its next state."""

    def __init__(self, current: object, target: object) -> None:
        super().__init__(f"cannot move from {current} to {target}")
        self.current = current
        self.target = target


class AlreadyInitialized(InvalidTransition):
    """init_server/init_client called more than once in a process."""


class NotReady(TandemError):
    """A cross-component lookup happened before the Init phase finished."""


class ComponentInitError(TandemError):
    """An Init hook raised; the Init sequence was aborted."""

    def __init__(self, name: str) -> None:
        super().__init__(f"init hook failed: {name}")
        self.name = name


class WrongSide(TandemError):
    """A client-only (or server-only) operation was used on the other side."""


# =============================================================================
# Lookups
# =============================================================================

class UnknownComponent(TandemError):
    """No component with that name is registered locally."""


class UnknownMethod(TandemError):
    """The method is not declared on the component."""

    def __init__(self, component: str, method: str) -> None:
        super().__init__(f"unknown method {component}.{method}")
        self.component = component
        self.method = method


class UnknownSignal(TandemError):
    """The signal is not declared on the component."""

    def __init__(self, component: str, signal: str) -> None:
        super().__init__(f"unknown signal {component}.{signal}")
        self.component = component
        self.signal = signal


class UnknownEvent(TandemError):
    """The event is not declared on the component."""

    def __init__(self, component: str, event: str) -> None:
        super().__init__(f"unknown event {component}.{event}")
        self.component = component
        self.event = event


class UnknownFunction(TandemError):
    """The function is not declared on the component."""

    def __init__(self, component: str, function: str) -> None:
        super().__init__(f"unknown function {component}.{function}")
        self.component = component
        self.function = function


# =============================================================================
# Client bridges
# =============================================================================

class ServiceDiscoveryTimeout(TandemError):
    """The remote descriptor was not published within the bounded wait."""

    def __init__(self, name: str, timeout: float) -> None:
        super().__init__(f"service {name!r} not discovered within {timeout}s")
        self.name = name
        self.timeout = timeout


class BridgeDestroyed(TandemError):
    """A destroyed bridge was used."""

    def __init__(self, name: str) -> None:
        super().__init__(f"bridge destroyed: {name}")
        self.name = name
